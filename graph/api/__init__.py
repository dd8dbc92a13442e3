from .graph_api import GraphAPI, GraphAPIError, create_headers, get_access_token
from .device_api import DeviceAPI
from .managed_device_api import ManagedDeviceAPI

__all__ = [
    'GraphAPI',
    'GraphAPIError',
    'create_headers',
    'get_access_token',
    'DeviceAPI',
    'ManagedDeviceAPI'
]
