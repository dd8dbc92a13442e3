from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from .device_record import DeviceRecord, DeviceSource


@dataclass(frozen=True)
class Snapshot:
    """
    Result of one reconciliation pass over a point-in-time capture of all three inventories.

    Collections hold sealed records in their original fetch order. The broken
    subset holds identity-service records with no device-management match and no
    working same-named sibling.
    """

    version: int
    captured_at: datetime
    directory: Tuple[DeviceRecord, ...]
    identity_service: Tuple[DeviceRecord, ...]
    device_management: Tuple[DeviceRecord, ...]
    broken: Tuple[DeviceRecord, ...]

    def collection(self, source: DeviceSource) -> Tuple[DeviceRecord, ...]:
        if source is DeviceSource.DIRECTORY:
            return self.directory
        if source is DeviceSource.IDENTITY_SERVICE:
            return self.identity_service
        return self.device_management

    def age(self, now: Optional[datetime] = None) -> timedelta:
        """Time elapsed since the snapshot was captured."""
        return (now or datetime.now(timezone.utc)) - self.captured_at
