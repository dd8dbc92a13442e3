"""
Cross-Referencer

Joins the three annotated collections and raises presence flags on every matched
record:

- identity-service records are joined to device-management records by the
  secondary identifier (Entra deviceId == Intune azureADDeviceId);
- each directory record is joined to identity-service records by name, and the
  same-named candidates are then tried, in collection order, against
  device-management records until the first one that has a match.

Absence of a match is the normal outcome for a broken device and is never an error.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from .config import NameMatcher, RecordFilter
from .models.device_record import DeviceRecord, DeviceSource

logger = logging.getLogger(__name__)


class CrossReferencer:
    """
    Tri-source join over one snapshot.

    The collections are mutated in place through DeviceRecord.mark_present(), so
    flags only ever accumulate. A CrossReferencer holds no state between passes.
    """

    def __init__(
        self,
        name_matcher: Optional[NameMatcher] = None,
        identity_filter: Optional[RecordFilter] = None,
        device_management_filter: Optional[RecordFilter] = None,
        progress_step: int = 10,
    ):
        self.name_matcher = name_matcher or NameMatcher()
        self.identity_filter = identity_filter
        self.device_management_filter = device_management_filter
        self.progress_step = progress_step

    def _index_identity_by_name(
        self, identity_service: Sequence[DeviceRecord]
    ) -> Dict[str, List[DeviceRecord]]:
        index: Dict[str, List[DeviceRecord]] = defaultdict(list)
        for record in identity_service:
            if self.identity_filter and not self.identity_filter(record):
                continue
            key = self.name_matcher.key(record.name)
            if key:
                index[key].append(record)
        return index

    def _index_managed_by_secondary_id(
        self, device_management: Sequence[DeviceRecord]
    ) -> Dict[str, List[DeviceRecord]]:
        index: Dict[str, List[DeviceRecord]] = defaultdict(list)
        for record in device_management:
            if self.device_management_filter and not self.device_management_filter(record):
                continue
            if record.secondary_id:
                index[record.secondary_id].append(record)
        return index

    def _managed_matches(
        self, identity_record: DeviceRecord, managed_index: Dict[str, List[DeviceRecord]]
    ) -> List[DeviceRecord]:
        if not identity_record.secondary_id:
            return []
        return managed_index.get(identity_record.secondary_id, [])

    def _link_identity_to_managed(
        self,
        identity_service: Sequence[DeviceRecord],
        managed_index: Dict[str, List[DeviceRecord]],
    ) -> int:
        """Credit identity/device-management pairs independently of the directory."""
        linked = 0
        for identity_record in identity_service:
            if self.identity_filter and not self.identity_filter(identity_record):
                continue
            matches = self._managed_matches(identity_record, managed_index)
            if not matches:
                continue
            identity_record.mark_present(DeviceSource.DEVICE_MANAGEMENT)
            for managed in matches:
                managed.mark_present(DeviceSource.IDENTITY_SERVICE)
            linked += 1
        return linked

    def _cross_reference_directory_record(
        self,
        directory_record: DeviceRecord,
        identity_index: Dict[str, List[DeviceRecord]],
        managed_index: Dict[str, List[DeviceRecord]],
    ) -> None:
        candidates = identity_index.get(self.name_matcher.key(directory_record.name), [])
        if not candidates:
            return

        directory_record.mark_present(DeviceSource.IDENTITY_SERVICE)

        for candidate in candidates:
            candidate.mark_present(DeviceSource.DIRECTORY)
            matches = self._managed_matches(candidate, managed_index)
            if not matches:
                continue

            directory_record.mark_present(DeviceSource.DEVICE_MANAGEMENT)
            candidate.mark_present(DeviceSource.DEVICE_MANAGEMENT)
            for managed in matches:
                managed.mark_present(DeviceSource.IDENTITY_SERVICE)
                managed.mark_present(DeviceSource.DIRECTORY)
            # First satisfying candidate wins; later duplicates keep their flags.
            break

    def cross_reference(
        self,
        directory: Sequence[DeviceRecord],
        identity_service: Sequence[DeviceRecord],
        device_management: Sequence[DeviceRecord],
    ) -> None:
        """
        Raise presence flags on every matched record of the three annotated collections.

        Args:
            directory: Annotated Active Directory records.
            identity_service: Annotated Entra ID records.
            device_management: Annotated Intune records.
        """
        identity_index = self._index_identity_by_name(identity_service)
        managed_index = self._index_managed_by_secondary_id(device_management)

        linked = self._link_identity_to_managed(identity_service, managed_index)
        logger.info(
            f"🔗 Linked {linked} identity-service records to device-management records"
        )

        total = len(directory)
        next_report = self.progress_step
        for position, directory_record in enumerate(directory, start=1):
            self._cross_reference_directory_record(
                directory_record, identity_index, managed_index
            )
            if self.progress_step > 0:
                percent = position * 100 // total
                if percent >= next_report:
                    logger.info(
                        f"   ⏳ Cross-referenced {position}/{total} directory records ({percent}%)"
                    )
                    next_report = (percent // self.progress_step + 1) * self.progress_step

        matched = sum(1 for record in directory if record.in_identity_service)
        logger.info(
            f"✅ Cross-referenced {total} directory records: {matched} found in identity service"
        )

