"""
Shared plumbing for REST-backed platforms.

GitHub, GitLab and Gitea all speak JSON over HTTPS with a bearer-style
token. This module owns the HTTP client and the mapping from HTTP
failures to platform exceptions.
"""

import logging
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from classroom_repos.git.auth import GitCredentials, GitProvider, inject_credentials
from classroom_repos.platform.base import PlatformAPI
from classroom_repos.platform.config import PlatformConfig
from classroom_repos.platform.exceptions import (
    AuthenticationError,
    BackendError,
    NotFoundError,
    PermissionDenied,
    RateLimited,
)

logger = logging.getLogger(__name__)


class RestPlatform(PlatformAPI):
    """
    Base class for platforms backed by a REST API.

    Subclasses set ``git_provider``, build ``api_url`` and the auth headers,
    and implement the capability methods on top of ``_request``.
    """

    git_provider: GitProvider = GitProvider.GENERIC

    def __init__(
        self,
        config: PlatformConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the REST platform.

        Args:
            config: Platform configuration with base_url, org and token
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(config)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def web_url(self) -> str:
        """Base URL of the web interface (used for clone URLs)."""
        return self.config.base_url

    @property
    def api_url(self) -> str:
        """Base URL of the REST API."""
        raise NotImplementedError

    def _auth_headers(self, token: str) -> dict[str, str]:
        """Headers carrying the token."""
        return {"Authorization": f"Bearer {token}"}

    def _build_headers(self) -> dict[str, str]:
        """Build request headers."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        token = self.config.get_token()
        if token:
            headers.update(self._auth_headers(token))

        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=httpx.Timeout(self.config.timeout),
                headers=self._build_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _require_token(self) -> None:
        if not self.config.get_token():
            raise AuthenticationError(
                f"An access token is required for {self.platform_name}",
                platform=self.platform_name,
            )

    # =========================================================================
    # Requests and error mapping
    # =========================================================================

    def _error_detail(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"

        if isinstance(data, dict):
            return str(data.get("message") or data.get("error") or data)
        return str(data)

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Convert HTTP error responses to platform exceptions."""
        status_code = response.status_code
        detail = self._error_detail(response)
        request = response.request
        common_kwargs = {
            "platform": self.platform_name,
            "status_code": status_code,
            "details": {"method": request.method, "url": str(request.url)},
        }

        if status_code == 401:
            raise AuthenticationError(f"Authentication failed: {detail}", **common_kwargs)
        elif status_code == 403:
            if (
                response.headers.get("X-RateLimit-Remaining") == "0"
                or "rate limit" in detail.lower()
            ):
                raise RateLimited(
                    f"Rate limit exceeded: {detail}",
                    retry_after=_retry_after(response),
                    **common_kwargs,
                )
            raise PermissionDenied(f"Permission denied: {detail}", **common_kwargs)
        elif status_code == 404:
            raise NotFoundError(f"Not found: {request.url.path}: {detail}", **common_kwargs)
        elif status_code == 429:
            raise RateLimited(
                f"Rate limit exceeded: {detail}",
                retry_after=_retry_after(response),
                **common_kwargs,
            )
        elif status_code >= 500:
            raise BackendError(f"Server error: {detail}", **common_kwargs)
        else:
            raise BackendError(detail, **common_kwargs)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
        accept: tuple[int, ...] = (),
    ) -> httpx.Response:
        """
        Send a request to the API.

        Args:
            method: HTTP method
            path: Path relative to the API root
            json: JSON body
            params: Query parameters
            accept: Non-2xx status codes returned to the caller instead of raised

        Raises:
            PlatformError: For error responses and transport failures
        """
        client = await self._get_client()
        logger.debug(f"{method} {self.api_url}{path}")

        try:
            response = await client.request(method, path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise BackendError(
                f"Request timed out after {self.config.timeout}s: {method} {path}: {e}",
                platform=self.platform_name,
            )
        except httpx.HTTPError as e:
            raise BackendError(
                f"Request failed: {method} {path}: {e}",
                platform=self.platform_name,
            )

        if response.is_success or response.status_code in accept:
            return response

        self._handle_error_response(response)
        return response

    async def _get_optional(self, path: str, **kwargs: Any) -> Optional[Any]:
        """GET a resource, returning None when it does not exist."""
        response = await self._request("GET", path, accept=(404,), **kwargs)
        if response.status_code == 404:
            return None
        return response.json()

    # =========================================================================
    # Push URLs
    # =========================================================================

    def clone_url(self, repo_name: str) -> str:
        """HTTPS clone URL of a repository, without credentials."""
        return f"{self.web_url}/{self.config.org}/{repo_name}.git"

    def _push_username(self) -> Optional[str]:
        """Username placed in front of the token in push URLs."""
        return None

    def git_credentials(self, credential: Optional[str] = None) -> Optional[GitCredentials]:
        """
        Credentials for git operations against this backend.

        The credentials are scoped to the backend host, so they are never
        sent to templates hosted elsewhere.

        Args:
            credential: Token to use (defaults to the configured token)

        Returns:
            GitCredentials, or None when no token is available
        """
        token = credential or self.config.get_token()
        if not token:
            return None
        return GitCredentials(
            token=token,
            username=self._push_username(),
            provider=self.git_provider,
            host=urlparse(self.web_url).hostname,
        )

    def remote_url_for_push(self, repo_name: str, credential: Optional[str] = None) -> str:
        url = self.clone_url(repo_name)
        credentials = self.git_credentials(credential)
        if credentials is None:
            return url
        return inject_credentials(url, credentials)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    try:
        return float(value) if value else None
    except ValueError:
        return None

