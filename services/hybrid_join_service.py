"""
Hybrid Join Service

Fetches the Active Directory, Entra ID and Intune inventories, reconciles them in
one pass and keeps the result in a SnapshotStore for querying.

The three fetches are independent network calls and run concurrently. Everything
after the fetch runs sequentially on the captured snapshot.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from reconciliation.config import ReconciliationConfig
from reconciliation.engine import ReconciliationEngine
from reconciliation.exceptions import SourceFetchError
from reconciliation.models.device_record import DeviceRecord, DeviceSource
from reconciliation.models.lookup_result import LookupResult
from reconciliation.models.snapshot import Snapshot
from reconciliation.query import DeviceQuery
from reconciliation.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)


class HybridJoinService:
    """
    Orchestrates source fetching, reconciliation and querying.

    Args:
        directory: Object exposing fetch_directory_devices(scope_filter).
        graph: Object exposing fetch_identity_service_devices(operating_system) and
            fetch_device_management_devices().
        config: Engine configuration.
        store: Snapshot store to populate. A new one is created when omitted.
        operating_system: OS filter passed to the Entra ID fetch. None fetches all.
    """

    def __init__(
        self,
        directory,
        graph,
        config: Optional[ReconciliationConfig] = None,
        store: Optional[SnapshotStore] = None,
        operating_system: Optional[str] = "Windows",
    ):
        self.directory = directory
        self.graph = graph
        self.config = config or ReconciliationConfig()
        self.store = store if store is not None else SnapshotStore()
        self.operating_system = operating_system
        self.engine = ReconciliationEngine(self.config)
        self.query = DeviceQuery(self.store, self.config.name_matcher)

    def fetch_sources(
        self, scope_filter: Optional[str] = None
    ) -> Tuple[List[DeviceRecord], List[DeviceRecord], List[DeviceRecord]]:
        """
        Fetch the three collections concurrently.

        Raises:
            SourceFetchError: If any source fails. No partial result is returned.
        """
        fetchers: Dict[DeviceSource, Callable[[], List[DeviceRecord]]] = {
            DeviceSource.DIRECTORY: lambda: self.directory.fetch_directory_devices(
                scope_filter
            ),
            DeviceSource.IDENTITY_SERVICE: lambda: self.graph.fetch_identity_service_devices(
                self.operating_system
            ),
            DeviceSource.DEVICE_MANAGEMENT: self.graph.fetch_device_management_devices,
        }

        results: Dict[DeviceSource, List[DeviceRecord]] = {}
        with ThreadPoolExecutor(max_workers=len(fetchers)) as executor:
            futures = {source: executor.submit(fetch) for source, fetch in fetchers.items()}
            for source, future in futures.items():
                try:
                    results[source] = future.result()
                except Exception as e:
                    logger.error(f"❌ {source.label} fetch failed: {e}")
                    raise SourceFetchError(source.label, str(e)) from e

        return (
            results[DeviceSource.DIRECTORY],
            results[DeviceSource.IDENTITY_SERVICE],
            results[DeviceSource.DEVICE_MANAGEMENT],
        )

    def refresh(self, scope_filter: Optional[str] = None) -> Snapshot:
        """
        Capture a new snapshot and replace the stored one.

        Args:
            scope_filter: OU distinguished name limiting the AD search.

        Raises:
            SourceFetchError: If a source cannot be fetched. The stored snapshot is
                left as it was.
        """
        captured_at = datetime.now(timezone.utc)
        logger.info("🔄 Refreshing device inventories...")
        directory, identity_service, device_management = self.fetch_sources(scope_filter)
        return self.engine.reconcile(
            directory,
            identity_service,
            device_management,
            store=self.store,
            captured_at=captured_at,
        )

    def lookup(self, name: str) -> LookupResult:
        return self.query.lookup_by_name(name)
