"""
Pytest fixtures for the ETC toll-record test suite.

Provides:
- A file-backed SQLite engine per test (tables created fresh)
- Gateways and services wired to a DeterministicClock
- A persisted record for mapping tests
- Structured log capture

SQLite is used throughout; the engine hooks in etc_kernel.db.engine give it
SAVEPOINT and foreign-key support so the transactional paths behave as they
do on a server backend.
"""

import json
import logging
from io import StringIO

import pytest

from etc_ingestion.gateway.record_gateway import SqlAlchemyRecordGateway
from etc_ingestion.gateway.session_gateway import SqlAlchemyImportSessionGateway
from etc_ingestion.services.import_service import ImportService
from etc_ingestion.services.record_service import RecordService
from etc_kernel.db.engine import build_session_factory, create_engine_from_url, create_tables
from etc_kernel.domain.clock import DeterministicClock
from etc_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from etc_mapping.gateway.mapping_gateway import SqlAlchemyMappingGateway
from etc_mapping.services.mapping_service import MappingService
from tests.builders import FIXED_NOW, make_record


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture etc_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, import_service):
            import_service.import_csv(...)
            logs = captured_logs()
            assert any(r["message"] == "import_session_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("etc_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_from_url(f"sqlite:///{tmp_path / 'etc_test.db'}")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def record_gateway(session_factory, clock):
    return SqlAlchemyRecordGateway(session_factory, clock)


@pytest.fixture
def session_gateway(session_factory, clock):
    return SqlAlchemyImportSessionGateway(session_factory, clock)


@pytest.fixture
def mapping_gateway(session_factory, clock):
    return SqlAlchemyMappingGateway(session_factory, clock)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def import_service(record_gateway, session_gateway, clock):
    return ImportService(record_gateway, session_gateway, clock)


@pytest.fixture
def record_service(record_gateway, clock):
    return RecordService(record_gateway, clock)


@pytest.fixture
def mapping_service(mapping_gateway, record_gateway, clock):
    return MappingService(mapping_gateway, record_gateway, clock)


@pytest.fixture
def stored_record(record_service):
    """A persisted record to hang mappings on."""
    return record_service.create_record(make_record())
