"""
HTTP client for the Senado Federal open-data API.

The API serves XML-derived JSON (requested through the Accept header).
Every non-2xx response and transport failure is mapped onto the exception
hierarchy in core.exceptions so that RetryPolicy can tell transient
failures from permanent ones. get() makes a single attempt and
get_with_retry() runs it through a RetryPolicy.
"""

import re
import httpx
from typing import Any, Dict, Optional
from urllib.parse import quote
from core.config import settings
from core.exceptions import (
    APIExtractionError,
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    NetworkError,
    RateLimitError,
    ResourceNotFoundError,
)
from ingestion.extractors.retry import RetryPolicy
import logging

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def replace_path(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """
    Substitute ``{name}`` placeholders in an endpoint path.

    Example:
        replace_path("/senador/{codigo}/votacoes", {"codigo": 5012})
        -> "/senador/5012/votacoes"

    Raises:
        ConfigurationError: If a placeholder has no value
    """
    params = params or {}

    def _sub(match):
        key = match.group(1)
        if key not in params or params[key] is None:
            raise ConfigurationError(
                f"Missing path parameter '{key}'",
                context={"path": path}
            )
        return quote(str(params[key]), safe="")

    return _PLACEHOLDER.sub(_sub, path)


class SenadoAPIClient:
    """
    Async client for the open-data API.

    Attributes:
        base_url: API root (``settings.SENADO_API_BASE_URL``)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.SENADO_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.SENADO_API_TIMEOUT
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                transport=self._transport
            )
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SenadoAPIClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def get(
        self,
        path: str,
        path_params: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Single GET attempt returning the decoded JSON body.

        Raises:
            AuthenticationError: HTTP 401/403
            BadRequestError: HTTP 400
            ResourceNotFoundError: HTTP 404
            RateLimitError: HTTP 429 (``retry_after`` from the header)
            NetworkError: HTTP 5xx, timeouts and transport failures
            APIExtractionError: Any other failure, including undecodable JSON
        """
        url = replace_path(path, path_params)
        query = {k: v for k, v in (params or {}).items() if v is not None}
        context = {"api_url": f"{self.base_url}{url}"}

        logger.debug(f"GET {url} params={query}")

        try:
            response = await self._get_client().get(url, params=query)
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Request timeout for {url}",
                context={**context, "timeout": self.timeout},
                original_exception=e
            )
        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error for {url}",
                context=context,
                original_exception=e
            )

        status = response.status_code
        context["status_code"] = status

        if status in (401, 403):
            raise AuthenticationError(f"Authentication failed for {url}", context=context)

        if status == 400:
            raise BadRequestError(f"Bad request: {url}", context=context)

        if status == 404:
            raise ResourceNotFoundError(f"Resource not found: {url}", context=context)

        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError(f"Rate limit exceeded for {url}", context=context, retry_after=retry_after)

        if status >= 500:
            raise NetworkError(
                f"Server error {status} for {url}",
                context={**context, "response_body": response.text[:500]}
            )

        if status >= 300:
            raise APIExtractionError(
                f"Unexpected status {status} for {url}",
                context={**context, "response_body": response.text[:500]}
            )

        try:
            return response.json()
        except ValueError as e:
            raise APIExtractionError(
                "Failed to parse JSON response",
                context={**context, "response_body": response.text[:500]},
                original_exception=e
            )

    async def get_with_retry(
        self,
        path: str,
        path_params: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        retry_policy: Optional[RetryPolicy] = None
    ) -> Any:
        """
        GET through a RetryPolicy.

        Without a policy one is built from the SENADO_MAX_RETRIES and
        SENADO_RETRY_DELAY settings.
        """
        policy = retry_policy or RetryPolicy(
            max_attempts=settings.SENADO_MAX_RETRIES,
            delay=settings.SENADO_RETRY_DELAY
        )
        return await policy.execute(
            lambda: self.get(path, path_params, params),
            label=f"GET {path}"
        )


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
