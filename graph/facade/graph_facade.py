import logging
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from reconciliation.models.device_record import DeviceRecord, DeviceSource

from ..api.device_api import DeviceAPI
from ..api.graph_api import GRAPH_BASE_URL, create_headers, get_access_token
from ..api.managed_device_api import ManagedDeviceAPI

logger = logging.getLogger(__name__)

# Intune reports this id for devices that never registered with Entra ID.
EMPTY_DEVICE_ID = "00000000-0000-0000-0000-000000000000"


def _parse_timestamps(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Convert Graph *DateTime strings into datetimes, leaving everything else as-is."""
    converted = {}
    for key, value in raw.items():
        if key.endswith("DateTime") and isinstance(value, str) and value:
            try:
                converted[key] = date_parser.isoparse(value)
                continue
            except ValueError:
                logger.debug(f"Could not parse {key}={value!r}")
        converted[key] = value
    return converted


class GraphFacade:
    """Entra ID and Intune device sources over Microsoft Graph."""

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        base_url: str = GRAPH_BASE_URL,
    ):
        headers = create_headers(get_access_token(tenant_id, client_id, client_secret))
        self.devices = DeviceAPI(base_url, headers)
        self.managed_devices = ManagedDeviceAPI(base_url, headers)

    @staticmethod
    def to_identity_record(raw: Dict[str, Any]) -> DeviceRecord:
        attributes = _parse_timestamps(
            {k: v for k, v in raw.items() if k not in ("displayName", "deviceId")}
        )
        return DeviceRecord(
            source=DeviceSource.IDENTITY_SERVICE,
            name=raw.get("displayName") or "",
            secondary_id=raw.get("deviceId") or None,
            attributes=attributes,
        )

    @staticmethod
    def to_managed_record(raw: Dict[str, Any]) -> DeviceRecord:
        device_id = raw.get("azureADDeviceId")
        if not device_id or device_id == EMPTY_DEVICE_ID:
            device_id = None
        attributes = _parse_timestamps(
            {k: v for k, v in raw.items() if k not in ("deviceName", "azureADDeviceId")}
        )
        return DeviceRecord(
            source=DeviceSource.DEVICE_MANAGEMENT,
            name=raw.get("deviceName") or "",
            secondary_id=device_id,
            attributes=attributes,
        )

    def fetch_identity_service_devices(
        self, operating_system: Optional[str] = "Windows"
    ) -> List[DeviceRecord]:
        """
        Fetch Entra ID device registrations.

        Args:
            operating_system: Only fetch devices reporting this OS. None fetches all.

        Raises:
            GraphAPIError: If the collection cannot be retrieved completely.
        """
        logger.info("📥 Fetching Entra ID devices...")
        records = [self.to_identity_record(raw) for raw in self.devices.get_devices(operating_system)]
        logger.info(f"   📦 Fetched {len(records)} Entra ID devices")
        return records

    def fetch_device_management_devices(self) -> List[DeviceRecord]:
        """
        Fetch Intune managed devices.

        Raises:
            GraphAPIError: If the collection cannot be retrieved completely.
        """
        logger.info("📥 Fetching Intune managed devices...")
        records = [
            self.to_managed_record(raw)
            for raw in self.managed_devices.get_managed_devices()
        ]
        missing_ids = sum(1 for record in records if record.secondary_id is None)
        if missing_ids:
            logger.warning(
                f"⚠️  {missing_ids} Intune devices have no Entra device id and can never match"
            )
        logger.info(f"   📦 Fetched {len(records)} Intune managed devices")
        return records
