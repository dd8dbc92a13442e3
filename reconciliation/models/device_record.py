from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, NamedTuple, Optional

from ..exceptions import SealedRecordError


class DeviceSource(Enum):
    """The inventory a device record was fetched from (its home collection)."""

    DIRECTORY = "directory"
    IDENTITY_SERVICE = "identity_service"
    DEVICE_MANAGEMENT = "device_management"

    @property
    def flag_name(self) -> str:
        """Name of the presence flag that tracks membership in this source."""
        return f"in_{self.value}"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    DeviceSource.DIRECTORY: "Active Directory",
    DeviceSource.IDENTITY_SERVICE: "Entra ID",
    DeviceSource.DEVICE_MANAGEMENT: "Intune",
}


class PresenceFlags(NamedTuple):
    in_directory: bool
    in_identity_service: bool
    in_device_management: bool


@dataclass
class DeviceRecord:
    """
    A device entry from one of the three inventories, unified for reconciliation.

    The presence flag of the record's home collection is set on construction and
    stays true. Other flags are only ever raised through mark_present(), so they
    accumulate during a pass and never reset. Once a pass completes the record is
    sealed and becomes read-only.

    Attributes:
        source: Home collection of the record.
        name: AD computer name, Entra displayName or Intune deviceName.
        secondary_id: Entra deviceId (identity records) or Intune azureADDeviceId
            (device-management records). None for directory records.
        attributes: Source-specific pass-through attributes, opaque to the engine.
    """

    source: DeviceSource
    name: str
    secondary_id: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    in_directory: bool = False
    in_identity_service: bool = False
    in_device_management: bool = False
    _sealed: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not isinstance(self.source, DeviceSource):
            raise TypeError(f"source must be a DeviceSource, got {self.source!r}")
        setattr(self, self.source.flag_name, True)

    def __setattr__(self, key: str, value: Any) -> None:
        if getattr(self, "_sealed", False):
            raise SealedRecordError(
                f"Device record '{self.name}' ({self.source.value}) is sealed and cannot be modified"
            )
        super().__setattr__(key, value)

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    @property
    def flags(self) -> PresenceFlags:
        return PresenceFlags(
            self.in_directory, self.in_identity_service, self.in_device_management
        )

    def has_presence(self, source: DeviceSource) -> bool:
        return getattr(self, source.flag_name)

    def mark_present(self, source: DeviceSource) -> None:
        """Record that this device was found in the given source."""
        setattr(self, source.flag_name, True)

    def seal(self) -> "DeviceRecord":
        """Freeze the record and its attributes. Returns the record for chaining."""
        if not self._sealed:
            object.__setattr__(
                self, "attributes", MappingProxyType(dict(self.attributes))
            )
            object.__setattr__(self, "_sealed", True)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """
        Flatten the record into a single row.

        Pass-through attributes whose key collides with a core field are kept
        under an ``attr_`` prefix so nothing is dropped.
        """
        row: Dict[str, Any] = {
            "source": self.source.value,
            "name": self.name,
            "secondary_id": self.secondary_id,
            "in_directory": self.in_directory,
            "in_identity_service": self.in_identity_service,
            "in_device_management": self.in_device_management,
        }
        for key, value in self.attributes.items():
            row[f"attr_{key}" if key in row else key] = value
        return row
