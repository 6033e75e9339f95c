"""VAT transaction report routes: period discovery, aggregation and upload."""
from __future__ import annotations

from collections.abc import Iterator
from tempfile import SpooledTemporaryFile
from typing import IO

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from vatreport.api.deps import get_db_session, require_user_id
from vatreport.core.config import get_settings
from vatreport.schemas import (
    AggregateResponse,
    AvailablePeriodsResponse,
    CountryTransactionsResponse,
    IngestResponse,
)
from vatreport.services.ingestion import IngestionError, ReportIngestService
from vatreport.services.periods import InvalidPeriodError, parse_frequency
from vatreport.services.queries import ReportQueryService

router = APIRouter(prefix="/transactions")


def _required(name: str, value: str | None) -> str:
    if value is None or not value.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{name} is required")
    return value.strip()


def _bad_request(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/available-periods", response_model=AvailablePeriodsResponse)
def available_periods(
    user_id: str = Depends(require_user_id),
    tax_frequency: str | None = Query(default=None),
    session: Session = Depends(get_db_session),
) -> AvailablePeriodsResponse:
    try:
        kind = parse_frequency(tax_frequency)
    except InvalidPeriodError as exc:
        raise _bad_request(exc) from exc

    periods = ReportQueryService(session).list_available_periods(user_id, kind)
    return AvailablePeriodsResponse(
        user_id=user_id,
        frequency=kind.value,
        count=len(periods),
        periods=[period.to_dict() for period in periods],
    )


@router.get("/fetch", response_model=AggregateResponse)
def fetch_aggregates(
    user_id: str = Depends(require_user_id),
    year: str | None = Query(default=None),
    period: str | None = Query(default=None),
    session: Session = Depends(get_db_session),
) -> AggregateResponse:
    year_value = _required("year", year)
    period_value = _required("period", period)
    try:
        report = ReportQueryService(session).fetch_aggregates(user_id, year_value, period_value)
    except InvalidPeriodError as exc:
        raise _bad_request(exc) from exc

    return AggregateResponse(
        year=report.period.year,
        period=report.period.token,
        label=report.period.label,
        range={"start": report.date_range.start, "end": report.date_range.end},
        summaries=[summary.to_dict() for summary in report.summaries],
    )


@router.get("/fetch-by-country", response_model=CountryTransactionsResponse)
def fetch_by_country(
    user_id: str = Depends(require_user_id),
    year: str | None = Query(default=None),
    period: str | None = Query(default=None),
    country: str | None = Query(default=None),
    session: Session = Depends(get_db_session),
) -> CountryTransactionsResponse:
    year_value = _required("year", year)
    period_value = _required("period", period)
    country_value = _required("country", country)
    try:
        report = ReportQueryService(session).fetch_country_transactions(
            user_id, year_value, period_value, country_value
        )
    except InvalidPeriodError as exc:
        raise _bad_request(exc) from exc

    return CountryTransactionsResponse(
        country=report.country,
        country_name=report.country_name,
        year=report.period.year,
        period=report.period.token,
        count=len(report.transactions),
        transactions=report.transactions,
    )


async def spool_request_body(request: Request) -> SpooledTemporaryFile:
    """Copy the request stream into a temporary file that spills to disk when large."""
    settings = get_settings()
    spool = SpooledTemporaryFile(max_size=settings.upload_spool_max_bytes)
    async for chunk in request.stream():
        if chunk:
            spool.write(chunk)
    spool.seek(0)
    return spool


def iter_file_chunks(handle: IO[bytes], chunk_size: int) -> Iterator[bytes]:
    return iter(lambda: handle.read(chunk_size), b"")


@router.post("/upload", response_model=IngestResponse)
async def upload_report(
    request: Request,
    user_id: str = Depends(require_user_id),
    session: Session = Depends(get_db_session),
) -> IngestResponse:
    settings = get_settings()
    spool = await spool_request_body(request)
    try:
        if spool.read(1) == b"":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
        spool.seek(0)

        service = ReportIngestService(session, settings=settings)
        try:
            result = await run_in_threadpool(
                service.ingest_csv, iter_file_chunks(spool, settings.upload_chunk_size), user_id
            )
        except IngestionError as exc:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        spool.close()

    return IngestResponse(
        accepted=result.accepted,
        inserted=result.inserted,
        skipped=result.skipped,
        skipped_by_reason=result.skipped_by_reason,
    )


__all__ = ["available_periods", "fetch_aggregates", "fetch_by_country", "router", "upload_report"]
