"""Create the schema if needed and ingest a local report file for one user."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vatreport.core.config import get_settings
from vatreport.core.logging import configure_logging
from vatreport.db.session import SessionLocal, create_schema
from vatreport.services.ingestion import ReportIngestService

logger = logging.getLogger("vatreport.scripts.ingest_report")


def ingest_file(path: Path, user_id: str) -> None:
    settings = get_settings()
    create_schema()
    session = SessionLocal()
    try:
        with path.open("rb") as handle:
            chunks = iter(lambda: handle.read(settings.upload_chunk_size), b"")
            result = ReportIngestService(session, settings=settings).ingest_csv(chunks, user_id)
    finally:
        session.close()
    logger.info(
        "Ingested %s: accepted=%s inserted=%s skipped=%s",
        path,
        result.accepted,
        result.inserted,
        result.skipped,
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("path", type=Path, help="CSV VAT transaction report")
    parser.add_argument("--user-id", required=True, help="scope key the rows are stored under")
    args = parser.parse_args(argv)

    configure_logging()
    ingest_file(args.path, args.user_id)


if __name__ == "__main__":
    main()
