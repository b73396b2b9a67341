"""
etc_ingestion -- toll-record ingestion and deduplication.

Parses CSV extracts into validated records, fingerprints them, drops
duplicates against the store and persists the rest inside one transaction,
tracking per-row outcomes on an ImportSession.

Architecture:
    etc_ingestion/ is a top-level package above etc_kernel. etc_mapping
    reads records through its gateway; etc_acquisition drives the import
    service once per account.
"""
