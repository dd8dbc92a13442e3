from .device_record import DeviceRecord, DeviceSource, PresenceFlags
from .lookup_result import LookupResult
from .snapshot import Snapshot

__all__ = ['DeviceRecord', 'DeviceSource', 'PresenceFlags', 'LookupResult', 'Snapshot']
