"""Routes for queued report uploads."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from vatreport.api.deps import require_user_id
from vatreport.api.routes.transactions import spool_request_body
from vatreport.schemas import UploadQueuedResponse
from vatreport.services.uploads import ReportUploadResult, ReportUploadService, UploadError

router = APIRouter(prefix="/uploads")


@router.post("/reports", response_model=UploadQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
async def upload_report_for_ingestion(
    request: Request,
    user_id: str = Depends(require_user_id),
) -> UploadQueuedResponse:
    spool = await spool_request_body(request)
    try:
        if spool.read(1) == b"":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
        spool.seek(0)

        service = ReportUploadService()
        try:
            result: ReportUploadResult = await run_in_threadpool(
                service.handle_upload,
                user_id=user_id,
                body=spool,
                filename=request.headers.get("x-upload-filename"),
            )
        except UploadError as exc:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    finally:
        spool.close()

    return UploadQueuedResponse(upload_id=result.upload_id, location=result.location, status="QUEUED")


__all__ = ["router", "upload_report_for_ingestion"]
