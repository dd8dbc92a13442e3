from .config import NameMatcher, ReconciliationConfig
from .engine import ReconciliationEngine
from .exceptions import (
    PredicateSyntaxError,
    ReconciliationError,
    SealedRecordError,
    SnapshotNotPopulatedError,
    SourceFetchError,
)
from .models import DeviceRecord, DeviceSource, LookupResult, PresenceFlags, Snapshot
from .predicates import Predicate, STANDARD_QUERIES, parse_predicate
from .query import DeviceQuery
from .snapshot_store import SnapshotState, SnapshotStore

__all__ = [
    'NameMatcher',
    'ReconciliationConfig',
    'ReconciliationEngine',
    'PredicateSyntaxError',
    'ReconciliationError',
    'SealedRecordError',
    'SnapshotNotPopulatedError',
    'SourceFetchError',
    'DeviceRecord',
    'DeviceSource',
    'LookupResult',
    'PresenceFlags',
    'Snapshot',
    'Predicate',
    'STANDARD_QUERIES',
    'parse_predicate',
    'DeviceQuery',
    'SnapshotState',
    'SnapshotStore',
]
