"""API client for the Monaca cloud IDE."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ._version import __version__
from .config import ConfigStore, UserDataStore, config
from .exceptions import (
    MonacaAPIError,
    MonacaAuthenticationError,
    MonacaInvalidResponseError,
    MonacaNetworkError,
)
from .models import FileTree, tree_from_api_response

logger = logging.getLogger(__name__)

API_TOKEN_HEADER = "X-Monaca-Param-Api-Token"
SESSION_HEADER = "X-Monaca-Param-Session"


@dataclass
class SessionTokens:
    """Tokens handed out by a successful login."""

    api: str
    session: str


class MonacaClient:
    """Async client for the Monaca project, file and build API.

    Examples:
        >>> async with MonacaClient() as client:
        ...     await client.relogin()
        ...     tree = await client.get_project_files("PROJECT_ID")
    """

    def __init__(
        self,
        api_root: str | None = None,
        config_store: ConfigStore | None = None,
        user_data: UserDataStore | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Monaca API client.

        Args:
            api_root: Root of the web API (uses config if not provided)
            config_store: Settings store used for the outbound proxy
            user_data: Store for the relogin token and client id
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        self.api_root = (api_root or config.api_root).rstrip("/")
        self.config_store = config_store or ConfigStore()
        self.user_data = user_data or UserDataStore()
        self.timeout = timeout
        self.version = __version__
        self.tokens: SessionTokens | None = None
        self.login_body: dict[str, Any] | None = None
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def logged_in(self) -> bool:
        return self.tokens is not None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            proxy = self.config_store.get("http_proxy") or None
            if proxy:
                logger.debug("Using proxy %s", proxy)
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                proxy=proxy,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> MonacaClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _raise_for_response(self, response: httpx.Response) -> None:
        """Turn a non-success response into a MonacaAPIError.

        The server usually answers failures with ``{"message": "..."}``;
        when the body is not parseable, the status code is reported instead.
        """
        status_code = response.status_code
        message = f"Error code: {status_code}"
        try:
            error_data = response.json()
            if isinstance(error_data, dict) and error_data.get("message"):
                message = str(error_data["message"])
        except ValueError:
            pass

        if status_code == 401:
            raise MonacaAuthenticationError(message, status_code)
        raise MonacaAPIError(message, status_code)

    async def _request(
        self,
        method: str,
        resource: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make an API request.

        Args:
            method: HTTP method
            resource: API resource path (leading slash optional)
            authenticated: Attach session tokens (requires login)
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful httpx response

        Raises:
            MonacaAuthenticationError: If not logged in
            MonacaNetworkError: On transport failure
            MonacaAPIError: On a non-success status code
        """
        if not resource.startswith("/"):
            resource = "/" + resource
        url = f"{self.api_root}{resource}"

        if authenticated:
            if self.tokens is None:
                raise MonacaAuthenticationError("Must be logged in to use this method.")
            params = dict(kwargs.pop("params", None) or {})
            params["api_token"] = self.tokens.api
            kwargs["params"] = params
            headers = dict(kwargs.pop("headers", None) or {})
            headers["Cookie"] = self.tokens.session
            kwargs["headers"] = headers

        client = self._get_client()
        logger.debug("%s %s", method, resource)
        try:
            response = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise MonacaNetworkError(
                f"Network error: {e}", code=type(e).__name__
            ) from e

        if response.status_code not in (200, 201):
            self._raise_for_response(response)
        return response

    def _parse_result(self, response: httpx.Response) -> Any:
        """Extract the ``result`` member of a JSON response."""
        try:
            data = response.json()
        except ValueError as e:
            raise MonacaInvalidResponseError(
                "Invalid JSON response from server", response.status_code
            ) from e
        if not isinstance(data, dict) or "result" not in data:
            raise MonacaInvalidResponseError(
                "Response is missing the result member", response.status_code
            )
        return data["result"]

    def _expect(self, value: Any, kind: type, what: str) -> Any:
        """Check the shape of a parsed result, e.g. a dict for build status."""
        if not isinstance(value, kind):
            raise MonacaInvalidResponseError(
                f"Unexpected {what} in server response: {type(value).__name__}"
            )
        return value

    async def _get(self, resource: str, **params: Any) -> Any:
        response = await self._request("GET", resource, params=params or None)
        return self._parse_result(response)

    async def _post(self, resource: str, data: dict[str, Any] | None = None) -> Any:
        response = await self._request("POST", resource, data=data)
        return self._parse_result(response)

    # =========================
    # Session Operations
    # =========================

    async def _login(self, form: dict[str, Any]) -> None:
        form = {
            "language": "en",
            "clientType": "local",
            "version": self.version,
            **form,
        }
        client_id = self.user_data.get("clientId")
        if client_id:
            form["clientId"] = client_id

        response = await self._request(
            "POST", "/user/login", authenticated=False, data=form
        )
        result = self._expect(self._parse_result(response), dict, "login result")

        self.user_data.set("reloginToken", result.get("token", ""))
        self.user_data.set("clientId", result.get("clientId"))

        api_token = response.headers.get(API_TOKEN_HEADER)
        session = response.headers.get(SESSION_HEADER)
        if not api_token or not session:
            raise MonacaAuthenticationError("Login response did not contain tokens")

        self.tokens = SessionTokens(api=api_token, session=session)
        self.login_body = result
        logger.debug("Logged in to %s", self.api_root)

    async def login(self, email: str, password: str) -> None:
        """Sign in with email and password and save a relogin token."""
        await self._login({"email": email, "password": password})

    async def relogin(self) -> None:
        """Sign in again using the saved relogin token."""
        token = self.user_data.get("reloginToken")
        if not token:
            raise MonacaAuthenticationError(
                "No saved login. Run 'pymonaca login' first."
            )
        await self._login({"token": token})

    def logout(self) -> None:
        """Forget the relogin token and the in-memory session."""
        self.user_data.set("reloginToken", "")
        self.tokens = None
        self.login_body = None

    # =========================
    # Project Operations
    # =========================

    async def get_projects(self) -> list[dict[str, Any]]:
        """Fetch all projects of the logged in user."""
        result = self._expect(await self._get("/user/projects"), dict, "project list")
        items: list[dict[str, Any]] = self._expect(
            result.get("items") or [], list, "project items"
        )
        return items

    async def create_project(
        self,
        name: str,
        description: str = "",
        template_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a new project in the cloud.

        Args:
            name: Project name
            description: Project description
            template_id: Template to start from (e.g. "minimum")

        Returns:
            The created project's info (contains ``projectId``)
        """
        form = {"name": name, "description": description}
        if template_id:
            form["templateId"] = template_id
        result: dict[str, Any] = self._expect(
            await self._post("/user/project/create", data=form),
            dict,
            "project creation",
        )
        logger.debug("Created project %s", result.get("projectId"))
        return result

    async def get_project_files(self, project_id: str) -> FileTree:
        """Fetch the remote file tree of a project.

        Returns:
            FileTree keyed by project path
        """
        result = self._expect(
            await self._post(f"/project/{project_id}/file/tree"), dict, "file tree"
        )
        items = self._expect(result.get("items") or {}, dict, "file tree items")
        return tree_from_api_response(items)

    async def read_file(self, project_id: str, path: str) -> bytes:
        """Download the raw content of a single project file."""
        response = await self._request(
            "POST", f"/project/{project_id}/file/read", data={"path": path}
        )
        return response.content

    async def save_file(self, project_id: str, path: str, content: bytes) -> Any:
        """Upload the content of a single project file."""
        response = await self._request(
            "POST",
            f"/project/{project_id}/file/save",
            data={"path": path},
            files={"content": (path.rsplit("/", 1)[-1] or "content", content)},
        )
        if not response.content:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError:
            return {}

    # =========================
    # Build Operations
    # =========================

    async def submit_build(self, project_id: str, form: dict[str, Any]) -> str:
        """Start a remote build and return its queue id."""
        result = self._expect(
            await self._post(f"/project/{project_id}/build", data=form),
            dict,
            "build submission",
        )
        if result.get("queue_id") is None:
            raise MonacaInvalidResponseError("Build submission returned no queue_id")
        return str(result["queue_id"])

    async def get_build_status(self, project_id: str, queue_id: str) -> dict[str, Any]:
        """Query build status (``finished``, ``status``, ``description``)."""
        result: dict[str, Any] = self._expect(
            await self._post(f"/project/{project_id}/build/status/{queue_id}"),
            dict,
            "build status",
        )
        return result

    async def get_build_result(self, project_id: str, queue_id: str) -> dict[str, Any]:
        """Fetch the build result (artifact info or ``error_message``)."""
        result: dict[str, Any] = self._expect(
            await self._post(f"/project/{project_id}/build/result/{queue_id}"),
            dict,
            "build result",
        )
        return result
