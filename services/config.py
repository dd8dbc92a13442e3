import os
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from reconciliation.config import NameMatcher, ReconciliationConfig
from reconciliation.models.device_record import DeviceRecord

load_dotenv()

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _require(config: Dict[str, Any], keys: Dict[str, str]) -> None:
    missing = [env_name for key, env_name in keys.items() if not config.get(key)]
    if missing:
        raise ValueError(f"Missing required environment variables: {missing}")


class HybridJoinConfig:
    """Centralized configuration for the hybrid join audit, read from the environment."""

    @staticmethod
    def get_ldap_config() -> Dict[str, Any]:
        """Get Active Directory connection settings for LDAPAdapter."""
        use_ssl = _env_flag("AD_USE_SSL", True)
        config = {
            "server": os.getenv("AD_SERVER"),
            "search_base": os.getenv("AD_SEARCH_BASE"),
            "user": os.getenv("AD_USER"),
            "keyring_service": os.getenv("AD_KEYRING_SERVICE", "hybrid_join_ad"),
            "use_ssl": use_ssl,
            "port": int(os.getenv("AD_PORT", "636" if use_ssl else "389")),
            "timeout": int(os.getenv("AD_TIMEOUT", "600")),
        }
        _require(
            config,
            {"server": "AD_SERVER", "search_base": "AD_SEARCH_BASE", "user": "AD_USER"},
        )
        return config

    @staticmethod
    def get_graph_config() -> Dict[str, Any]:
        """Get Microsoft Graph app registration settings for GraphFacade."""
        config = {
            "tenant_id": os.getenv("GRAPH_TENANT_ID"),
            "client_id": os.getenv("GRAPH_CLIENT_ID"),
            "client_secret": os.getenv("GRAPH_CLIENT_SECRET"),
            "base_url": os.getenv("GRAPH_BASE_URL", "https://graph.microsoft.com/v1.0"),
        }
        _require(
            config,
            {
                "tenant_id": "GRAPH_TENANT_ID",
                "client_id": "GRAPH_CLIENT_ID",
                "client_secret": "GRAPH_CLIENT_SECRET",
            },
        )
        return config

    @staticmethod
    def get_operating_system_filter() -> str:
        """OS reported by the Entra ID devices to audit. Empty string audits every OS."""
        return os.getenv("HYBRID_JOIN_OS_FILTER", "Windows")

    @staticmethod
    def get_reconciliation_config(
        case_sensitive: Optional[bool] = None,
        strip_domain_suffix: Optional[bool] = None,
        operating_system: Optional[str] = None,
        trim_whitespace: Optional[bool] = None,
    ) -> ReconciliationConfig:
        """
        Build the engine configuration.

        Explicit arguments (from the command line) win over the environment.

        Args:
            case_sensitive: Compare device names case-sensitively.
            strip_domain_suffix: Drop DNS suffixes before comparing names.
            operating_system: Only Entra ID devices reporting this OS take part
                in the joins and the broken set.
            trim_whitespace: Ignore leading and trailing whitespace in names.
        """
        if case_sensitive is None:
            case_sensitive = _env_flag("HYBRID_JOIN_CASE_SENSITIVE")
        if strip_domain_suffix is None:
            strip_domain_suffix = _env_flag("HYBRID_JOIN_STRIP_DOMAIN_SUFFIX")
        if trim_whitespace is None:
            trim_whitespace = _env_flag("HYBRID_JOIN_TRIM_NAMES", default=True)

        return ReconciliationConfig(
            name_matcher=NameMatcher(
                case_sensitive=case_sensitive,
                strip_domain_suffix=strip_domain_suffix,
                trim_whitespace=trim_whitespace,
            ),
            identity_filter=(
                reports_operating_system(operating_system) if operating_system else None
            ),
            device_management_filter=has_entra_device_id,
        )


def has_entra_device_id(record: DeviceRecord) -> bool:
    """Intune records without an Entra device id cannot be joined."""
    return bool(record.secondary_id)


def reports_operating_system(operating_system: str) -> Callable[[DeviceRecord], bool]:
    """Identity filter admitting only devices that report the given OS."""
    expected = operating_system.casefold()

    def check(record: DeviceRecord) -> bool:
        return str(record.attributes.get("operatingSystem") or "").casefold() == expected

    return check
