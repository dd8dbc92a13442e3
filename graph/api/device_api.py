from typing import Any, Dict, List, Optional

from .graph_api import GraphAPI

DEVICE_FIELDS = [
    "id",
    "deviceId",
    "displayName",
    "operatingSystem",
    "operatingSystemVersion",
    "trustType",
    "accountEnabled",
    "approximateLastSignInDateTime",
    "registrationDateTime",
    "isCompliant",
    "isManaged",
]


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


class DeviceAPI(GraphAPI):
    """Entra ID device registrations (/devices)."""

    def get_devices(self, operating_system: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Gets every registered device.

        Args:
            operating_system: Only return devices reporting this operatingSystem.
        """
        params = {"$select": ",".join(DEVICE_FIELDS), "$top": 999}
        if operating_system:
            params["$filter"] = f"operatingSystem eq {odata_quote(operating_system)}"
        return self.get_all("devices", params)

