"""
Tests for build_services -- the composition root wired against SQLite.

One end-to-end pass: import a CSV, map an imported record, then run an
acquisition job through the same container.
"""

from datetime import date

import pytest

from etc_acquisition.domain.types import JobStatus
from etc_config.schema import (
    AcquisitionSettings,
    DatabaseSettings,
    LoggingSettings,
    Settings,
)
from etc_ingestion.domain.types import ListRecordsParams
from etc_kernel.domain.clock import DeterministicClock
from etc_mapping.domain.types import CreateMappingParams
from etc_services import ServiceContainer, build_services
from tests.builders import FIXED_NOW, csv_bytes, csv_line, import_params


class StaticClient:
    def __init__(self, data: bytes):
        self.data = data

    def download(self, from_date, to_date, ctx):
        return self.data

    def close(self):
        pass


ACQUIRED = csv_bytes(csv_line(toll_amount="700"), csv_line(toll_amount="800"))


@pytest.fixture
def container(tmp_path):
    settings = Settings(
        database=DatabaseSettings(url=f"sqlite:///{tmp_path / 'etc_container.db'}"),
        acquisition=AcquisitionSettings(pacing_delay_seconds=0, retry_base_delay_seconds=0),
        logging=LoggingSettings(level="DEBUG"),
    )
    built = build_services(
        settings,
        lambda credentials: StaticClient(ACQUIRED),
        clock=DeterministicClock(FIXED_NOW),
    )
    yield built
    built.close()


class TestBuildServices:

    def test_returns_container(self, container):
        assert isinstance(container, ServiceContainer)
        assert container.engine.dialect.name == "sqlite"
        assert container.clock.now() == FIXED_NOW

    def test_health_check(self, container):
        container.health_check()

    def test_services_share_one_database(self, container):
        data = csv_bytes(csv_line())
        result = container.import_service.import_csv(import_params(data), data)
        assert result.session.success_rows == 1

        record = container.record_service.list_records(ListRecordsParams()).items[0]
        mapping = container.mapping_service.create_mapping(
            CreateMappingParams(
                record_id=record.record_id,
                mapping_type="dtako",
                mapped_entity_id=5,
                mapped_entity_type="dtako_row",
            )
        )
        assert container.mapping_service.get_mappings_for_record(record.record_id) == [mapping]

    def test_acquisition_job(self, container):
        tracker = container.job_tracker
        tracker.process_async("nightly", ["alice:pw"], date(2024, 5, 1), date(2024, 5, 31))
        job = tracker.wait("nightly", timeout=30)

        assert job.status == JobStatus.COMPLETED
        assert job.imported_records == 2
        assert container.record_service.list_records(ListRecordsParams()).total == 2

    def test_existing_engine_reused(self, container):
        again = build_services(
            container.settings,
            lambda credentials: StaticClient(b""),
            engine=container.engine,
            create_schema=False,
        )
        assert again.engine is container.engine
        again.health_check()
