from etc_ingestion.gateway.base import ImportSessionGateway, RecordGateway
from etc_ingestion.gateway.record_gateway import SqlAlchemyRecordGateway
from etc_ingestion.gateway.session_gateway import SqlAlchemyImportSessionGateway

__all__ = [
    "ImportSessionGateway",
    "RecordGateway",
    "SqlAlchemyImportSessionGateway",
    "SqlAlchemyRecordGateway",
]
