import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ConnectionError, JSONDecodeError, Timeout

# Set up logging
logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"

RETRYABLE_STATUS_CODES = (500, 502, 503, 504)

# Global token cache to avoid unnecessary OAuth requests
_token_cache: Dict[str, Dict[str, Any]] = {}


class GraphAPIError(Exception):
    """Raised when a Microsoft Graph request fails after all retries."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def get_access_token(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    scope: str = GRAPH_SCOPE,
    token_url: Optional[str] = None,
) -> str:
    """
    Obtain a Microsoft Graph access token using the client credentials flow.

    Tokens are cached per tenant, client and scope until 60 seconds before expiry.

    Args:
        tenant_id (str): Entra tenant ID.
        client_id (str): App registration client ID.
        client_secret (str): App registration client secret.
        scope (str): The requested scope for the token.
        token_url (Optional[str]): Override for the token endpoint.

    Returns:
        str: The access token.

    Raises:
        GraphAPIError: If the token request fails or the response is incomplete.
    """
    cache_key = f"{tenant_id}:{client_id}:{scope}"

    cached_token = _token_cache.get(cache_key)
    if cached_token and time.time() < cached_token["expires_at"] - 60:
        logger.debug("Using cached Graph access token")
        return cached_token["access_token"]

    data = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
        "scope": scope,
    }
    url = token_url or TOKEN_URL_TEMPLATE.format(tenant_id=tenant_id)

    logger.debug(f"Requesting Graph access token for scope: {scope}")
    try:
        response = requests.post(url, data=data, timeout=30)
    except requests.RequestException as e:
        logger.error(f"❌ Token request failed with exception: {str(e)}")
        raise GraphAPIError(f"Token request failed: {e}")

    if response.status_code != 200:
        logger.error(f"❌ Token request failed: {response.status_code}")
        logger.error(f"Response: {response.text}")
        raise GraphAPIError("Token request failed", response.status_code)

    token_data = response.json()
    if "access_token" not in token_data or "expires_in" not in token_data:
        raise GraphAPIError("Token response missing access_token or expires_in")

    _token_cache[cache_key] = {
        "access_token": token_data["access_token"],
        "expires_at": time.time() + int(token_data["expires_in"]),
    }
    logger.debug(f"Graph access token obtained, expires in {token_data['expires_in']} seconds")
    return token_data["access_token"]


def create_headers(access_token: str) -> Dict[str, str]:
    """
    Create HTTP headers for Microsoft Graph requests.

    Args:
        access_token (str): The bearer token.

    Returns:
        Dict[str, str]: A dictionary containing the required HTTP headers.
    """
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
        "ConsistencyLevel": "eventual",
    }


class GraphAPI:
    """
    Base class for read-only Microsoft Graph requests.

    Attributes:
        base_url (str): The Graph endpoint, e.g. https://graph.microsoft.com/v1.0.
        headers (Dict[str, str]): HTTP headers to use for API requests.
        max_retries (int): Attempts per request for transient failures.
        timeout (int): Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        max_retries: int = 3,
        timeout: int = 60,
    ):
        self.base_url = base_url.rstrip("/")
        self.headers = headers
        self.max_retries = max_retries
        self.timeout = timeout

    def _build_url(self, url_suffix: str) -> str:
        if url_suffix.startswith("http"):
            return url_suffix
        return f"{self.base_url}/{url_suffix.lstrip('/')}"

    def get(
        self, url_suffix: str, params: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Perform a GET request to the specified Graph endpoint.

        Args:
            url_suffix (str): Endpoint path relative to base_url, or an absolute
                URL such as an @odata.nextLink.
            params (Optional[Dict[str, Any]]): Query string parameters.

        Returns:
            Optional[Dict[str, Any]]: The JSON response if successful, None otherwise.

        Notes:
            Connection errors, timeouts and 5xx responses are retried with
            exponential backoff (1s, 2s, 4s). 429 responses wait for Retry-After.
        """
        url = self._build_url(url_suffix)

        for attempt in range(self.max_retries):
            is_last_attempt = attempt == self.max_retries - 1
            try:
                response = requests.get(
                    url, headers=self.headers, params=params, timeout=self.timeout
                )
            except (ConnectionError, Timeout) as e:
                if is_last_attempt:
                    logger.error(
                        f"❌ Connection error after {attempt + 1} attempts: {str(e)} "
                        f"(URL: {url[:80]}...)"
                    )
                    return None
                backoff_time = 2**attempt
                logger.warning(
                    f"⚠️  Connection error on attempt {attempt + 1}/{self.max_retries}. "
                    f"Retrying in {backoff_time}s... (URL: {url[:80]}...)"
                )
                time.sleep(backoff_time)
                continue

            if response.status_code == 200:
                logger.debug(f"{response.status_code} | Successful Request!")
                try:
                    return response.json()
                except JSONDecodeError:
                    logger.error(f"❌ Response from {url[:80]} is not valid JSON")
                    return None

            if response.status_code == 429 and not is_last_attempt:
                sleep_time = self._retry_after(response)
                logger.info(f"Rate limit exceeded. Sleeping for {sleep_time} seconds.")
                time.sleep(sleep_time)
                continue

            if response.status_code in RETRYABLE_STATUS_CODES and not is_last_attempt:
                backoff_time = 2**attempt
                logger.warning(
                    f"⚠️  {response.status_code} on attempt {attempt + 1}/{self.max_retries}. "
                    f"Retrying in {backoff_time}s..."
                )
                time.sleep(backoff_time)
                continue

            logger.error(f"Request failed: {response.status_code}")
            logger.error(f"Response text: {response.text}")
            return None

        return None

    @staticmethod
    def _retry_after(response: requests.Response) -> int:
        retry_after = response.headers.get("Retry-After")
        try:
            return max(int(retry_after), 1)
        except (TypeError, ValueError):
            logger.warning("Rate limit exceeded but no usable Retry-After provided.")
            return 5

    def get_all(
        self, url_suffix: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Fetch every item of a collection endpoint, following @odata.nextLink.

        Args:
            url_suffix (str): Collection endpoint path.
            params (Optional[Dict[str, Any]]): Query parameters for the first page.
                Later pages carry them inside the nextLink.

        Returns:
            List[Dict[str, Any]]: All items across all pages.

        Raises:
            GraphAPIError: If any page cannot be retrieved. A partial collection is
                never returned.
        """
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = url_suffix
        page_params = params
        pages = 0

        while next_url:
            page = self.get(next_url, params=page_params)
            if page is None:
                raise GraphAPIError(
                    f"Failed to retrieve page {pages + 1} of {url_suffix} "
                    f"after {len(items)} items"
                )
            items.extend(page.get("value", []))
            pages += 1
            next_url = page.get("@odata.nextLink")
            page_params = None

        logger.debug(f"Retrieved {len(items)} items from {url_suffix} in {pages} pages")
        return items
