import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .exceptions import SnapshotNotPopulatedError
from .models.device_record import DeviceRecord
from .models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class SnapshotState(Enum):
    UNPOPULATED = "unpopulated"
    POPULATED = "populated"


class SnapshotStore:
    """
    Holder of the current reconciled snapshot.

    Starts UNPOPULATED. Each refresh replaces the whole snapshot and bumps the
    version; older snapshots are not kept. Readers either get a complete snapshot
    or SnapshotNotPopulatedError, never a half-written one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._version = 0

    @property
    def state(self) -> SnapshotState:
        if self._snapshot is None:
            return SnapshotState.UNPOPULATED
        return SnapshotState.POPULATED

    @property
    def is_populated(self) -> bool:
        return self.state is SnapshotState.POPULATED

    @property
    def version(self) -> int:
        """Number of snapshots stored so far; 0 while unpopulated."""
        return self._version

    @property
    def captured_at(self) -> Optional[datetime]:
        snapshot = self._snapshot
        return snapshot.captured_at if snapshot else None

    def replace(
        self,
        captured_at: datetime,
        directory: Iterable[DeviceRecord],
        identity_service: Iterable[DeviceRecord],
        device_management: Iterable[DeviceRecord],
        broken: Iterable[DeviceRecord],
    ) -> Snapshot:
        """Store a new snapshot in place of the current one and return it."""
        with self._lock:
            snapshot = Snapshot(
                version=self._version + 1,
                captured_at=captured_at,
                directory=tuple(directory),
                identity_service=tuple(identity_service),
                device_management=tuple(device_management),
                broken=tuple(broken),
            )
            self._snapshot = snapshot
            self._version = snapshot.version
        logger.debug(f"Snapshot v{snapshot.version} stored (captured {captured_at.isoformat()})")
        return snapshot

    def current(self) -> Snapshot:
        """
        Return the current snapshot.

        Raises:
            SnapshotNotPopulatedError: If no reconciliation pass has run yet.
        """
        snapshot = self._snapshot
        if snapshot is None:
            raise SnapshotNotPopulatedError()
        return snapshot

    def clear(self) -> None:
        """Drop the current snapshot. The version counter keeps counting."""
        with self._lock:
            self._snapshot = None
