"""
Annotator

Stamps every record of the three fetched collections with a fresh set of presence
flags: true for the record's home collection, false for the other two.
"""

import logging
from typing import Iterable, List, Tuple

from .models.device_record import DeviceRecord, DeviceSource

logger = logging.getLogger(__name__)


def annotate_collection(
    records: Iterable[DeviceRecord], source: DeviceSource
) -> List[DeviceRecord]:
    """
    Return annotated copies of the records of one collection.

    The input records are left untouched, so the same fetched collection can be
    reconciled again. Any flags carried over from a previous pass are dropped.

    Raises:
        ValueError: If a record's home source is not the collection's source.
    """
    annotated = []
    for record in records:
        if record.source is not source:
            raise ValueError(
                f"Record '{record.name}' comes from {record.source.value} "
                f"but was supplied as a {source.value} record"
            )
        annotated.append(
            DeviceRecord(
                source=record.source,
                name=record.name,
                secondary_id=record.secondary_id,
                attributes=dict(record.attributes),
            )
        )
    return annotated


def annotate(
    directory: Iterable[DeviceRecord],
    identity_service: Iterable[DeviceRecord],
    device_management: Iterable[DeviceRecord],
) -> Tuple[List[DeviceRecord], List[DeviceRecord], List[DeviceRecord]]:
    """Annotate all three collections. Callers must use the returned lists from here on."""
    annotated = (
        annotate_collection(directory, DeviceSource.DIRECTORY),
        annotate_collection(identity_service, DeviceSource.IDENTITY_SERVICE),
        annotate_collection(device_management, DeviceSource.DEVICE_MANAGEMENT),
    )
    logger.debug(
        f"Annotated {len(annotated[0])} directory, {len(annotated[1])} identity-service "
        f"and {len(annotated[2])} device-management records"
    )
    return annotated
