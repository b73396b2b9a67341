from etc_mapping.gateway.mapping_gateway import MappingGateway, SqlAlchemyMappingGateway

__all__ = ["MappingGateway", "SqlAlchemyMappingGateway"]
