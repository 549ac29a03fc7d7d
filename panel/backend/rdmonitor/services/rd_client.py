"""
Real-Debrid REST client used by the traffic queries.

Every request is a bearer-authenticated GET against the configured base URL.
Failures are raised as RDAPIError subclasses, one per error kind, so each
caller can report them independently.
"""
import logging
from enum import Enum
from typing import Any, Optional

import httpx

from rdmonitor.config import settings

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    NETWORK_FAILURE = "network_failure"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    API_ERROR = "api_error"
    PARSE_FAILURE = "parse_failure"
    NO_DATA = "no_data"


class RDAPIError(Exception):
    """Base exception for Real-Debrid API errors."""
    kind = ErrorKind.API_ERROR

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NetworkFailure(RDAPIError):
    """Transport-level failure, timeouts included."""
    kind = ErrorKind.NETWORK_FAILURE


class Unauthorized(RDAPIError):
    kind = ErrorKind.UNAUTHORIZED


class RateLimited(RDAPIError):
    kind = ErrorKind.RATE_LIMITED


class ApiError(RDAPIError):
    kind = ErrorKind.API_ERROR


class ParseFailure(RDAPIError):
    kind = ErrorKind.PARSE_FAILURE


class NoData(RDAPIError):
    kind = ErrorKind.NO_DATA


def error_for_status(status_code: int) -> RDAPIError:
    if status_code == 401:
        return Unauthorized("Invalid API key", status_code=status_code)
    if status_code == 429:
        return RateLimited("Rate limit exceeded. Please wait a moment.", status_code=status_code)
    return ApiError(f"API error: HTTP {status_code}", status_code=status_code)


class RDClient:
    """Async client for the Real-Debrid REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Private API token, sent as a bearer credential
            base_url: API root, defaults to settings.api_base_url
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key or ""
        self.base_url = base_url or settings.api_base_url
        if not self.base_url.endswith("/"):
            self.base_url += "/"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Accept": "application/json",
            },
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "RDClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    async def close(self) -> None:
        await self._client.aclose()

    async def get_json(self, endpoint: str, params: dict = None, timeout: Optional[float] = None) -> Any:
        """GET `endpoint` and decode its JSON body, raising RDAPIError on failure."""
        kwargs: dict[str, Any] = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = await self._client.get(endpoint, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkFailure(f"Network error: request timed out ({e})") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(f"Network error: {e}") from e

        if not response.is_success:
            logger.debug("GET %s -> HTTP %s", endpoint, response.status_code)
            raise error_for_status(response.status_code)

        if not response.content.strip():
            raise NoData("No data received")
        try:
            return response.json()
        except ValueError as e:
            raise ParseFailure(f"Failed to parse response from {endpoint}") from e

    async def check_connection(self) -> dict:
        """
        Check the API key against the `user` endpoint.

        Returns:
            dict with api_reachable, auth_valid, username and error
        """
        result = {
            "api_reachable": False,
            "auth_valid": False,
            "username": None,
            "error": None,
        }
        if not self.api_key:
            result["error"] = "No API key configured"
            return result

        try:
            response = await self._client.get("user", timeout=settings.connection_test_timeout)
        except httpx.TimeoutException:
            result["error"] = "Connection failed: timeout"
            return result
        except httpx.HTTPError as e:
            result["error"] = f"Connection failed: {e}"
            return result

        result["api_reachable"] = True
        if response.status_code == 200:
            result["auth_valid"] = True
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and isinstance(body.get("username"), str):
                result["username"] = body["username"]
        elif response.status_code == 401:
            result["error"] = "Invalid API key"
        elif response.status_code == 403:
            result["error"] = "Account locked or permission denied"
        elif response.status_code == 429:
            result["error"] = "Rate limit exceeded"
        else:
            result["error"] = f"API error: HTTP {response.status_code}"
        return result
