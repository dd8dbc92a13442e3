"""
Directory Facade

Fetches Active Directory computer accounts and translates them into device
records for reconciliation. Directory records carry no secondary identifier.
"""

import logging
from typing import Any, Dict, List, Optional

from ldap3.core.exceptions import LDAPException

from reconciliation.models.device_record import DeviceRecord, DeviceSource

from ..adapters.ldap_adapter import LDAPAdapter

logger = logging.getLogger(__name__)

ACCOUNTDISABLE = 0x0002


def _single_value(value: Any) -> Any:
    """LDAP attributes may come back as single values or lists depending on schema."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


class DirectoryFacade:
    """Active Directory device source."""

    def __init__(self, adapter: LDAPAdapter):
        self.adapter = adapter

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DirectoryFacade":
        return cls(LDAPAdapter(config))

    def verify_connection(self) -> None:
        """
        Bind and search the base DN once so a bad server, credential or base
        fails before any fetch starts.

        Raises:
            LDAPException: If the connection test fails
        """
        logger.debug(f"Testing Active Directory connection: {self.adapter.get_connection_info()}")
        if not self.adapter.test_connection():
            raise LDAPException(f"Failed to establish connection with {self.adapter}")
        logger.debug("✅ Active Directory connection successful")

    @staticmethod
    def to_device_record(entry: Dict[str, Any]) -> Optional[DeviceRecord]:
        """
        Translate one computer entry. Returns None for entries without a name.
        """
        name = _single_value(entry.get("name")) or _single_value(entry.get("cn"))
        if not name:
            return None

        attributes = {
            key: _single_value(value)
            for key, value in entry.items()
            if key not in ("name", "cn", "dn")
        }
        attributes.setdefault("distinguishedName", entry.get("dn"))

        account_control = attributes.get("userAccountControl")
        if account_control is not None:
            try:
                attributes["enabled"] = not (int(account_control) & ACCOUNTDISABLE)
            except (TypeError, ValueError):
                logger.warning(
                    f"⚠️  Unexpected userAccountControl value for {name}: {account_control!r}"
                )

        return DeviceRecord(
            source=DeviceSource.DIRECTORY, name=str(name), attributes=attributes
        )

    def fetch_directory_devices(self, scope_filter: Optional[str] = None) -> List[DeviceRecord]:
        """
        Fetch every computer account, optionally restricted to one OU.

        Args:
            scope_filter: Distinguished name of the OU to search. Defaults to the
                adapter's search base.

        Raises:
            LDAPException: If the directory cannot be searched.
        """
        logger.info(f"📥 Fetching AD computers from {scope_filter or self.adapter.search_base}...")
        try:
            entries = self.adapter.search_computers(search_base=scope_filter)
        except LDAPException as e:
            logger.error(f"❌ Failed to fetch AD computers: {e}")
            raise

        records = []
        for entry in entries:
            record = self.to_device_record(entry)
            if record is None:
                logger.debug(f"Skipping unnamed directory entry: {entry.get('dn')}")
                continue
            records.append(record)

        logger.info(f"   📦 Fetched {len(records)} AD computers")
        return records
