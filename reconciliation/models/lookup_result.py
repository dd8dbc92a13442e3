from dataclasses import dataclass
from typing import Tuple

from .device_record import DeviceRecord, PresenceFlags


@dataclass(frozen=True)
class LookupResult:
    """Presence of a single device name in each of the three inventories."""

    name: str
    directory_matches: Tuple[DeviceRecord, ...] = ()
    identity_matches: Tuple[DeviceRecord, ...] = ()
    device_management_matches: Tuple[DeviceRecord, ...] = ()

    @property
    def in_directory(self) -> bool:
        return bool(self.directory_matches)

    @property
    def in_identity_service(self) -> bool:
        return bool(self.identity_matches)

    @property
    def in_device_management(self) -> bool:
        return bool(self.device_management_matches)

    @property
    def flags(self) -> PresenceFlags:
        return PresenceFlags(
            self.in_directory, self.in_identity_service, self.in_device_management
        )

    def as_dict(self):
        return self.flags._asdict()
