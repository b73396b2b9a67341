from etc_acquisition.clients.base import AcquisitionClient, AcquisitionClientFactory

__all__ = ["AcquisitionClient", "AcquisitionClientFactory"]
