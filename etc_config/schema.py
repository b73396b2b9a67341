"""
Settings schema.

Frozen dataclasses describing everything the ETC services need at
construction time.  The loader parses YAML into these types; the service
container reads them once and passes the pieces into each constructor.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///etc.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class ImportSettings:
    """Batch and paging limits for the import pipeline and list queries."""

    default_batch_size: int = 1000
    max_batch_size: int = 10000
    default_page_size: int = 50
    max_page_size: int = 1000


@dataclass(frozen=True)
class AcquisitionSettings:
    """Pacing and retry knobs for the asynchronous job tracker."""

    pacing_delay_seconds: float = 1.0
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 0.5
    job_retention_seconds: int = 86400
    default_account_type: str = "corporate"


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class Settings:
    """Root settings object."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    imports: ImportSettings = field(default_factory=ImportSettings)
    acquisition: AcquisitionSettings = field(default_factory=AcquisitionSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
