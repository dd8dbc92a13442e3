import getpass
import logging
from typing import Any, Dict, List, Optional

import keyring
from keyring.errors import KeyringError
from ldap3 import ALL, BASE, LEVEL, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException

logger = logging.getLogger(__name__)

# Attributes requested for computer objects. Everything else stays on the server.
COMPUTER_ATTRIBUTES = [
    "name",
    "distinguishedName",
    "dNSHostName",
    "operatingSystem",
    "operatingSystemVersion",
    "lastLogonTimestamp",
    "whenCreated",
    "userAccountControl",
    "objectGUID",
]

_SCOPES = {"base": BASE, "level": LEVEL, "subtree": SUBTREE}


class LDAPAdapter:
    """
    Read-only LDAP connection adapter for Active Directory.

    Handles server connections, keyring-backed authentication and paged searches.
    A fresh connection is bound for each search and always unbound afterwards.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize LDAP adapter with configuration settings.

        Args:
            config: Dictionary containing LDAP connection settings.
                   Required keys:
                   - 'server': LDAP server hostname
                   - 'search_base': Base DN for searches
                   - 'user': Username for authentication
                   - 'keyring_service': Keyring service name for password

                   Optional keys with defaults:
                   - 'port': LDAP port (default: 636 for SSL, 389 for non-SSL)
                   - 'use_ssl': Enable SSL/TLS (default: True)
                   - 'timeout': Connection timeout in seconds (default: 600)
                   - 'page_size': Page size for paged searches (default: 1000)

        Raises:
            ValueError: If required configuration keys are missing
            TypeError: If configuration is not a dictionary
        """
        if not isinstance(config, dict):
            raise TypeError("Configuration must be a dictionary")

        required_keys = ["server", "search_base", "user", "keyring_service"]
        missing_keys = [key for key in required_keys if not config.get(key)]
        if missing_keys:
            raise ValueError(f"Missing required configuration keys: {missing_keys}")

        self.server_hostname = config["server"]
        self.search_base = config["search_base"]
        self.user = config["user"]
        self.keyring_service = config["keyring_service"]

        self.use_ssl = config.get("use_ssl", True)
        self.port = config.get("port", 636 if self.use_ssl else 389)
        self.timeout = config.get("timeout", 600)  # AD is slow on large OUs
        self.page_size = config.get("page_size", 1000)

        self._server = None
        self._password = None

        logger.debug(f"LDAP adapter initialized for server: {self.server_hostname}")

    def _get_password(self) -> str:
        """
        Retrieve password from keyring or prompt user.

        Returns:
            str: The password for LDAP authentication

        Raises:
            KeyboardInterrupt: If user cancels password prompt
        """
        if self._password:
            return self._password

        try:
            password = keyring.get_password(self.keyring_service, self.user)
            if password:
                logger.debug("Using password from keyring")
                self._password = password
                return password
        except KeyringError as e:
            logger.warning(f"Could not retrieve password from keyring: {e}")

        try:
            password = getpass.getpass(f"Enter LDAP password for {self.user}: ")
        except KeyboardInterrupt:
            logger.info("Password prompt cancelled by user")
            raise

        self._password = password
        try:
            save_password = input("Save password to keyring? (y/n): ").lower().strip()
            if save_password == "y":
                keyring.set_password(self.keyring_service, self.user, password)
                logger.info("Password saved to keyring")
        except KeyringError as e:
            logger.warning(f"Could not save password to keyring: {e}")

        return password

    def _create_server(self) -> Server:
        if not self._server:
            self._server = Server(
                self.server_hostname,
                use_ssl=self.use_ssl,
                port=self.port,
                get_info=ALL,
                connect_timeout=self.timeout,
            )
            logger.debug(f"LDAP server object created: {self.server_hostname}:{self.port}")
        return self._server

    def _create_connection(self) -> Connection:
        """
        Create and bind LDAP connection.

        Raises:
            LDAPException: If connection or authentication fails
        """
        try:
            connection = Connection(
                self._create_server(),
                user=self.user,
                password=self._get_password(),
                auto_bind=True,
                receive_timeout=self.timeout,
                # Without this a failed page (noSuchObject, sizeLimit) ends the
                # paged_search generator early instead of raising.
                raise_exceptions=True,
            )
        except LDAPException as e:
            logger.error(f"❌ LDAP connection failed: {e}")
            raise

        if not connection.bound:
            raise LDAPException("Failed to bind to LDAP server")

        logger.info(f"Successfully connected to {self.server_hostname}")
        return connection

    def test_connection(self) -> bool:
        """
        Bind and run a minimal search at the search base.

        Returns:
            bool: True if the connection test succeeds, False otherwise
        """
        conn = None
        try:
            conn = self._create_connection()
            success = conn.search(
                search_base=self.search_base,
                search_filter="(objectClass=*)",
                search_scope=BASE,
                attributes=["1.1"],
            )
            if success:
                logger.info("✅ LDAP connection test successful")
            else:
                logger.warning(f"⚠️  LDAP test search failed: {conn.result}")
            return bool(success)
        except LDAPException as e:
            logger.error(f"❌ LDAP connection test failed: {e}")
            return False
        finally:
            if conn is not None:
                conn.unbind()

    def get_connection_info(self) -> Dict[str, Any]:
        """Configuration information (passwords excluded)."""
        return {
            "server": self.server_hostname,
            "port": self.port,
            "use_ssl": self.use_ssl,
            "search_base": self.search_base,
            "user": self.user,
            "keyring_service": self.keyring_service,
            "timeout": self.timeout,
            "page_size": self.page_size,
        }

    def __str__(self) -> str:
        ssl_status = "SSL" if self.use_ssl else "non-SSL"
        return f"LDAPAdapter({self.server_hostname}:{self.port}, {ssl_status}, user={self.user})"

    def search(
        self,
        search_filter: str,
        search_base: Optional[str] = None,
        scope: str = "subtree",
        attributes: Optional[List[str]] = None,
        page_size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Paged search returning every matching entry as a dictionary.

        The search always pages through the full result set, so a server-side size
        limit can never silently truncate the inventory.

        Args:
            search_filter: LDAP filter string (e.g., '(objectClass=computer)')
            search_base: Base DN for search (defaults to adapter's search_base)
            scope: Search scope - 'base', 'level', or 'subtree' (default: 'subtree')
            attributes: List of attributes to retrieve (None for all available)
            page_size: Page size (defaults to adapter's configured size)

        Returns:
            List[Dict[str, Any]]: One dictionary per entry with 'dn' and attributes

        Raises:
            LDAPException: If search operation fails
            ValueError: If parameters are invalid
        """
        if not search_filter or not isinstance(search_filter, str):
            raise ValueError("search_filter must be a non-empty string")
        if scope.lower() not in _SCOPES:
            raise ValueError(f"scope must be one of: {list(_SCOPES.keys())}")

        base_dn = search_base if search_base is not None else self.search_base
        conn = self._create_connection()
        try:
            logger.debug(
                f"Executing search: filter='{search_filter}', base='{base_dn}', scope='{scope}'"
            )
            responses = conn.extend.standard.paged_search(
                search_base=base_dn,
                search_filter=search_filter,
                search_scope=_SCOPES[scope.lower()],
                attributes=attributes or ["*"],
                paged_size=page_size or self.page_size,
                generator=True,
            )

            results = []
            for response in responses:
                if response.get("type") != "searchResEntry":
                    continue
                entry = {"dn": response.get("dn")}
                entry.update(response.get("attributes", {}))
                results.append(entry)

            logger.info(f"Search completed successfully: {len(results)} results returned")
            return results
        except LDAPException as e:
            logger.error(f"❌ LDAP search failed: {e}")
            raise
        finally:
            conn.unbind()
            logger.debug("Search connection closed")

    def search_computers(
        self, search_base: Optional[str] = None, attributes: Optional[List[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Return every computer object under the search base.

        Args:
            search_base: OU distinguished name to restrict the search to.
            attributes: Attributes to retrieve (defaults to COMPUTER_ATTRIBUTES).
        """
        return self.search(
            "(objectClass=computer)",
            search_base=search_base,
            attributes=attributes or COMPUTER_ATTRIBUTES,
        )
