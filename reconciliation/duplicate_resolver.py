"""
Duplicate Resolver

Derives the broken subset of the identity-service collection. Devices are grouped
by display name; a group with at least one member enrolled in device management
is considered healthy as a whole, so operators are not sent after a stale twin of
a working device. Every non-enrolled member of a group without a working member
is broken.
"""

import logging
from collections import OrderedDict
from typing import Iterable, List, Optional

from .config import NameMatcher, RecordFilter
from .models.device_record import DeviceRecord

logger = logging.getLogger(__name__)


def group_by_name(
    records: Iterable[DeviceRecord], name_matcher: Optional[NameMatcher] = None
) -> "OrderedDict[str, List[DeviceRecord]]":
    """Group records by normalized name, in first-appearance order."""
    matcher = name_matcher or NameMatcher()
    groups: "OrderedDict[str, List[DeviceRecord]]" = OrderedDict()
    for record in records:
        groups.setdefault(matcher.key(record.name), []).append(record)
    return groups


def resolve_broken(
    identity_service: Iterable[DeviceRecord],
    name_matcher: Optional[NameMatcher] = None,
    identity_filter: Optional[RecordFilter] = None,
) -> List[DeviceRecord]:
    """
    Return the identity-service records considered genuinely broken.

    Args:
        identity_service: Identity-service records after cross-referencing.
        name_matcher: Name normalization used for grouping. Should be the one the
            cross-referencer used.
        identity_filter: Records rejected by this filter never took part in the
            joins and are left out of the result.

    Returns:
        List[DeviceRecord]: Broken records in grouping order, then original order
        within each group. Reading flags only, so repeated calls on the same
        collection give the same list.
    """
    eligible = [
        record
        for record in identity_service
        if identity_filter is None or identity_filter(record)
    ]

    broken = []
    healthy_groups = 0
    for members in group_by_name(eligible, name_matcher).values():
        if any(member.in_device_management for member in members):
            healthy_groups += 1
            continue
        broken.extend(member for member in members if not member.in_device_management)

    logger.info(
        f"🩺 Broken subset: {len(broken)} identity-service records "
        f"({healthy_groups} name groups have a working device)"
    )
    return broken
