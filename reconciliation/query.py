import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .config import NameMatcher
from .exceptions import ReconciliationError
from .models.device_record import DeviceRecord, DeviceSource
from .models.lookup_result import LookupResult
from .models.snapshot import Snapshot
from .predicates import STANDARD_QUERIES, PredicateLike, as_predicate
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

BROKEN = "broken"

CollectionSelector = Union[DeviceSource, str, Sequence[DeviceRecord]]


class DeviceQuery:
    """
    Read-only access to the reconciled collections of a SnapshotStore.

    Every call reads the store's current snapshot, so a query object stays valid
    across refreshes. Before the first refresh every call raises
    SnapshotNotPopulatedError.
    """

    def __init__(self, store: SnapshotStore, name_matcher: Optional[NameMatcher] = None):
        self.store = store
        self.name_matcher = name_matcher or NameMatcher()

    @property
    def snapshot(self) -> Snapshot:
        return self.store.current()

    @property
    def directory_devices(self) -> Tuple[DeviceRecord, ...]:
        return self.snapshot.directory

    @property
    def identity_devices(self) -> Tuple[DeviceRecord, ...]:
        return self.snapshot.identity_service

    @property
    def managed_devices(self) -> Tuple[DeviceRecord, ...]:
        return self.snapshot.device_management

    @property
    def broken_devices(self) -> Tuple[DeviceRecord, ...]:
        return self.snapshot.broken

    def collection(self, selector: CollectionSelector) -> Tuple[DeviceRecord, ...]:
        """
        Resolve a collection selector.

        Args:
            selector: A DeviceSource, its value ("directory", "identity_service",
                "device_management"), "broken", or an explicit sequence of records.
        """
        if isinstance(selector, DeviceSource):
            return self.snapshot.collection(selector)
        if isinstance(selector, str):
            if selector == BROKEN:
                return self.broken_devices
            try:
                return self.snapshot.collection(DeviceSource(selector))
            except ValueError:
                raise ReconciliationError(f"Unknown device collection: {selector!r}")
        return tuple(selector)

    def filter(
        self, selector: CollectionSelector, predicate: PredicateLike
    ) -> List[DeviceRecord]:
        """Return the records of a collection that satisfy the predicate, in collection order."""
        records = self.collection(selector)
        test = as_predicate(predicate)
        return [record for record in records if test(record)]

    def run_standard_query(self, query_name: str) -> List[DeviceRecord]:
        query = STANDARD_QUERIES.get(query_name)
        if query is None:
            raise ReconciliationError(
                f"Unknown query {query_name!r}. Available: {', '.join(STANDARD_QUERIES)}"
            )
        return self.filter(query.source, query.predicate)

    def _find(self, records: Iterable[DeviceRecord], name: str) -> Tuple[DeviceRecord, ...]:
        return tuple(record for record in records if self.name_matcher.matches(record.name, name))

    def lookup_by_name(self, name: str) -> LookupResult:
        """
        Look a device name up in each of the three collections independently.

        Presence is decided by the records' own name fields, not by the annotation
        flags. A name found nowhere gives an all-false result.
        """
        snapshot = self.snapshot
        result = LookupResult(
            name=name,
            directory_matches=self._find(snapshot.directory, name),
            identity_matches=self._find(snapshot.identity_service, name),
            device_management_matches=self._find(snapshot.device_management, name),
        )
        logger.debug(f"Lookup '{name}': {result.as_dict()}")
        return result
