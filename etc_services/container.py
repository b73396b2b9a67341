"""
ServiceContainer -- explicit dependency struct built once per process.

Responsibility:
    Construct the engine, session factory, gateways and services from
    Settings and hand each constructor exactly what it needs.  Nothing is
    stored in module globals; callers keep the container and pass it around.

Architecture position:
    Outermost package.  Imports every other etc_* package.

Failure modes:
    - sqlalchemy errors from engine creation or ``create_tables``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from etc_acquisition.clients.base import AcquisitionClientFactory
from etc_acquisition.services.job_tracker import AcquisitionJobTracker
from etc_config.schema import Settings
from etc_ingestion.gateway.record_gateway import SqlAlchemyRecordGateway
from etc_ingestion.gateway.session_gateway import SqlAlchemyImportSessionGateway
from etc_ingestion.services.import_service import ImportService
from etc_ingestion.services.record_service import RecordService
from etc_kernel.db.engine import build_session_factory, create_engine_from_url, create_tables
from etc_kernel.domain.clock import Clock, SystemClock
from etc_kernel.domain.context import OperationContext
from etc_kernel.logging_config import configure_logging, get_logger
from etc_mapping.gateway.mapping_gateway import SqlAlchemyMappingGateway
from etc_mapping.services.mapping_service import MappingService

logger = get_logger("services.container")


@dataclass(frozen=True)
class ServiceContainer:
    settings: Settings
    clock: Clock
    engine: Engine
    session_factory: sessionmaker[Session]
    records: SqlAlchemyRecordGateway
    sessions: SqlAlchemyImportSessionGateway
    mappings: SqlAlchemyMappingGateway
    record_service: RecordService
    import_service: ImportService
    mapping_service: MappingService
    job_tracker: AcquisitionJobTracker

    def health_check(self, ctx: OperationContext | None = None) -> None:
        self.import_service.health_check(ctx)
        self.mapping_service.health_check(ctx)

    def close(self) -> None:
        self.job_tracker.shutdown()
        self.engine.dispose()
        logger.info("services_closed")


def build_services(
    settings: Settings,
    client_factory: AcquisitionClientFactory,
    *,
    clock: Clock | None = None,
    engine: Engine | None = None,
    create_schema: bool = True,
) -> ServiceContainer:
    """
    Wire every service from ``settings``.

    Args:
        settings: Loaded settings.
        client_factory: Builds one acquisition client per account.
        clock: Defaults to SystemClock.
        engine: Reuse an existing engine instead of creating one.
        create_schema: Create missing tables.
    """
    configure_logging(level=settings.logging.level)
    clock = clock or SystemClock()

    db = settings.database
    engine = engine or create_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    if create_schema:
        create_tables(engine)
    factory = build_session_factory(engine)

    records = SqlAlchemyRecordGateway(factory, clock)
    sessions = SqlAlchemyImportSessionGateway(factory, clock)
    mappings = SqlAlchemyMappingGateway(factory, clock)

    paging = {
        "default_page_size": settings.imports.default_page_size,
        "max_page_size": settings.imports.max_page_size,
    }
    record_service = RecordService(records, clock, **paging)
    import_service = ImportService(
        records,
        sessions,
        clock,
        default_batch_size=settings.imports.default_batch_size,
        **paging,
    )
    mapping_service = MappingService(mappings, records, clock, **paging)

    acq = settings.acquisition
    job_tracker = AcquisitionJobTracker(
        import_service,
        client_factory,
        clock,
        pacing_delay_seconds=acq.pacing_delay_seconds,
        retry_attempts=acq.retry_attempts,
        retry_base_delay_seconds=acq.retry_base_delay_seconds,
        job_retention_seconds=acq.job_retention_seconds,
        default_account_type=acq.default_account_type,
    )

    logger.info("services_built", extra={"dialect": engine.dialect.name})
    return ServiceContainer(
        settings=settings,
        clock=clock,
        engine=engine,
        session_factory=factory,
        records=records,
        sessions=sessions,
        mappings=mappings,
        record_service=record_service,
        import_service=import_service,
        mapping_service=mapping_service,
        job_tracker=job_tracker,
    )
