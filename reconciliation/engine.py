"""
Reconciliation Engine

Runs one reconciliation pass over a point-in-time capture of the three device
inventories: annotate, cross-reference, resolve the broken subset, then seal
everything into an immutable Snapshot.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from .annotator import annotate
from .config import ReconciliationConfig
from .cross_referencer import CrossReferencer
from .duplicate_resolver import resolve_broken
from .models.device_record import DeviceRecord
from .models.snapshot import Snapshot
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Sequential, single-threaded reconciliation of one snapshot."""

    def __init__(self, config: Optional[ReconciliationConfig] = None):
        self.config = config or ReconciliationConfig()
        self.cross_referencer = CrossReferencer(
            name_matcher=self.config.name_matcher,
            identity_filter=self.config.identity_filter,
            device_management_filter=self.config.device_management_filter,
            progress_step=self.config.progress_step,
        )

    def reconcile(
        self,
        directory: Iterable[DeviceRecord],
        identity_service: Iterable[DeviceRecord],
        device_management: Iterable[DeviceRecord],
        store: Optional[SnapshotStore] = None,
        captured_at: Optional[datetime] = None,
    ) -> Snapshot:
        """
        Reconcile the three collections.

        Args:
            directory: Active Directory records.
            identity_service: Entra ID records.
            device_management: Intune records.
            store: When given, the resulting snapshot replaces the store's current one.
            captured_at: Capture time of the inputs (defaults to now, UTC).

        Returns:
            Snapshot: The annotated, sealed collections and the broken subset.
        """
        captured_at = captured_at or datetime.now(timezone.utc)
        logger.info("🧩 Starting reconciliation pass...")

        annotated_directory, annotated_identity, annotated_managed = annotate(
            directory, identity_service, device_management
        )

        self.cross_referencer.cross_reference(
            annotated_directory, annotated_identity, annotated_managed
        )

        broken = resolve_broken(
            annotated_identity,
            name_matcher=self.config.name_matcher,
            identity_filter=self.config.identity_filter,
        )

        for collection in (annotated_directory, annotated_identity, annotated_managed):
            for record in collection:
                record.seal()

        if store is not None:
            snapshot = store.replace(
                captured_at,
                annotated_directory,
                annotated_identity,
                annotated_managed,
                broken,
            )
        else:
            snapshot = Snapshot(
                version=0,
                captured_at=captured_at,
                directory=tuple(annotated_directory),
                identity_service=tuple(annotated_identity),
                device_management=tuple(annotated_managed),
                broken=tuple(broken),
            )

        logger.info(
            f"✅ Reconciliation complete: {len(snapshot.directory)} directory, "
            f"{len(snapshot.identity_service)} identity-service, "
            f"{len(snapshot.device_management)} device-management records; "
            f"{len(snapshot.broken)} broken"
        )
        return snapshot
