"""
Microsoft Graph device sources.

Read-only access to Entra ID device registrations and Intune managed devices.
"""

from .api.graph_api import GraphAPI, GraphAPIError, create_headers, get_access_token
from .facade.graph_facade import GraphFacade

__all__ = ['GraphAPI', 'GraphAPIError', 'create_headers', 'get_access_token', 'GraphFacade']
