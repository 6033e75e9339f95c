"""OSS VAT report ingestion and aggregation service."""
