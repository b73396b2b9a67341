"""
Acquisition client protocol.

Contract:
    ``download`` returns the raw CSV bytes for one account and date range.
    Transient failures raise AcquisitionError (retried by the tracker);
    anything else is treated as a fault in the job.  ``close`` releases
    whatever the client holds and is always called once per client.

Architecture: etc_acquisition/clients.  Implementations (browser automation,
portal APIs) live outside this repository and are injected as a factory.
"""

from __future__ import annotations

from datetime import date
from typing import Callable, Protocol, runtime_checkable

from etc_acquisition.domain.types import AccountCredentials
from etc_kernel.domain.context import OperationContext


@runtime_checkable
class AcquisitionClient(Protocol):
    def download(
        self, from_date: date, to_date: date, ctx: OperationContext
    ) -> bytes: ...

    def close(self) -> None: ...


AcquisitionClientFactory = Callable[[AccountCredentials], AcquisitionClient]
