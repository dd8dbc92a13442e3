from dataclasses import dataclass
from typing import Callable, Optional

from .models.device_record import DeviceRecord

RecordFilter = Callable[[DeviceRecord], bool]


@dataclass(frozen=True)
class NameMatcher:
    """
    Normalization applied to device names before they are compared.

    Matching is always exact on the normalized key; there is no fuzzy matching.

    Attributes:
        case_sensitive: Compare names as-is instead of case-folded. Windows computer
            names are case-insensitive, so the default folds case.
        strip_domain_suffix: Drop everything from the first dot, so an FQDN-style
            display name ("PC1.contoso.com") matches the short AD name ("PC1").
        trim_whitespace: Drop leading and trailing whitespace before comparing. When
            off, "PC1 " and "PC1" are different devices.
    """

    case_sensitive: bool = False
    strip_domain_suffix: bool = False
    trim_whitespace: bool = True

    def key(self, name: Optional[str]) -> str:
        if not name:
            return ""
        key = name.strip() if self.trim_whitespace else name
        if self.strip_domain_suffix:
            key = key.split(".", 1)[0]
        return key if self.case_sensitive else key.casefold()

    def matches(self, left: Optional[str], right: Optional[str]) -> bool:
        left_key = self.key(left)
        return bool(left_key) and left_key == self.key(right)


@dataclass(frozen=True)
class ReconciliationConfig:
    """
    Settings for one reconciliation pass.

    Attributes:
        name_matcher: Name normalization for the directory/identity join, the
            duplicate grouping and single-name lookups.
        identity_filter: Restricts which identity-service records take part in
            the joins and the broken-set calculation. None admits every record.
        device_management_filter: Restricts which device-management records can
            satisfy the secondary-identifier join. None admits every record.
        progress_step: Log progress every this many percent of directory records.
    """

    name_matcher: NameMatcher = NameMatcher()
    identity_filter: Optional[RecordFilter] = None
    device_management_filter: Optional[RecordFilter] = None
    progress_step: int = 10
