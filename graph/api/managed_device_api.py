from typing import Any, Dict, List

from .graph_api import GraphAPI

MANAGED_DEVICE_FIELDS = [
    "id",
    "deviceName",
    "azureADDeviceId",
    "operatingSystem",
    "osVersion",
    "complianceState",
    "lastSyncDateTime",
    "enrolledDateTime",
    "managementAgent",
    "userPrincipalName",
    "serialNumber",
]


class ManagedDeviceAPI(GraphAPI):
    """Intune managed devices (/deviceManagement/managedDevices)."""

    def get_managed_devices(self) -> List[Dict[str, Any]]:
        """
        Gets every managed device.

        Every OS is returned: an Intune record can only be matched through its
        Entra device id, which the identity-service side already filters by OS.
        """
        params = {"$select": ",".join(MANAGED_DEVICE_FIELDS)}
        return self.get_all("deviceManagement/managedDevices", params)
