"""Zoho Desk API client with authentication and request handling."""

import asyncio
import json
import logging
import os
import time
from pathlib import Path
from typing import Any

import httpx

from desk_analytics.models import Department, MetricRow, Ticket

logger = logging.getLogger(__name__)

# Config file location
CONFIG_PATH = Path.home() / ".desk-analytics" / "config.json"

# Default timeout for API requests
DEFAULT_TIMEOUT = 30.0

# Zoho Desk pages hold at most 100 records
PAGE_LIMIT = 100

# Concurrent per-ticket metric requests
METRICS_CONCURRENCY = 5

# Refresh the access token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60

DEFAULT_DATA_CENTER = "com"

DASHBOARD_DEFAULTS: dict[str, Any] = {
    "timezone": "Asia/Kolkata",
    "metrics_page_size": 200,
    "archived_page_size": 500,
    "performance_page_size": 25,
}

_CREDENTIAL_ENV = {
    "client_id": "DESK_CLIENT_ID",
    "client_secret": "DESK_CLIENT_SECRET",
    "refresh_token": "DESK_REFRESH_TOKEN",
    "org_id": "DESK_ORG_ID",
}


class DeskClientError(Exception):
    """Base exception for Desk client errors."""


class DeskAuthError(DeskClientError):
    """Authentication error."""


class DeskAPIError(DeskClientError):
    """API request error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _load_config_from_file() -> dict[str, Any]:
    """Load configuration from config file."""
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable config file %s", CONFIG_PATH)
    return {}


def _get_credentials() -> dict[str, str]:
    """Get credentials from environment variables or config file.

    Environment variables win over the config file, key by key.

    Returns:
        Dict with client_id, client_secret, refresh_token, org_id, data_center

    Raises:
        DeskAuthError: If required credentials are missing
    """
    config = _load_config_from_file()
    creds = {}
    missing = []
    for key, env_var in _CREDENTIAL_ENV.items():
        value = os.environ.get(env_var) or config.get(key)
        if not value:
            missing.append(f"{key} ({env_var})")
        creds[key] = value

    if missing:
        raise DeskAuthError(
            f"Missing Zoho Desk credentials: {', '.join(missing)}. "
            f"Set environment variables or create config at {CONFIG_PATH}"
        )

    creds["data_center"] = (
        os.environ.get("DESK_DATA_CENTER") or config.get("data_center") or DEFAULT_DATA_CENTER
    )
    return creds


def _save_config(config: dict) -> Path:
    """Save config dict to file with owner-only permissions.

    Args:
        config: Config dictionary to save

    Returns:
        Path to the config file
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_PATH, "w") as f:
        json.dump(config, f, indent=2)
    try:
        CONFIG_PATH.chmod(0o600)
    except OSError:
        pass  # Windows doesn't support Unix permissions
    return CONFIG_PATH


def save_credentials(
    client_id: str,
    client_secret: str,
    refresh_token: str,
    org_id: str,
    data_center: str = DEFAULT_DATA_CENTER,
) -> Path:
    """Save Zoho Desk credentials to config file.

    Other settings already in the file (dashboard options) are kept.

    Returns:
        Path to the config file
    """
    config = _load_config_from_file()
    config.update({
        "client_id": client_id,
        "client_secret": client_secret,
        "refresh_token": refresh_token,
        "org_id": org_id,
        "data_center": data_center,
    })
    return _save_config(config)


def delete_credentials() -> bool:
    """Delete config file if it exists.

    Returns:
        True if config file was deleted, False if it didn't exist
    """
    if CONFIG_PATH.exists():
        CONFIG_PATH.unlink()
        return True
    return False


def get_dashboard_config() -> dict[str, Any]:
    """Dashboard settings from the config file, over the defaults."""
    config = _load_config_from_file()
    settings = dict(DASHBOARD_DEFAULTS)
    settings.update(config.get("dashboard") or {})
    return settings


def save_dashboard_config(**values: Any) -> Path:
    """Update dashboard settings in the config file.

    Only known keys are accepted.

    Raises:
        ValueError: On an unknown setting name
    """
    unknown = set(values) - set(DASHBOARD_DEFAULTS)
    if unknown:
        raise ValueError(f"Unknown dashboard setting(s): {', '.join(sorted(unknown))}")
    config = _load_config_from_file()
    dashboard = config.get("dashboard") or {}
    dashboard.update({k: v for k, v in values.items() if v is not None})
    config["dashboard"] = dashboard
    return _save_config(config)


def get_auth_status() -> dict:
    """Get current authentication configuration status.

    Returns:
        Dict with:
            - configured: bool - whether credentials are available
            - source: str | None - "env", "config", or None
            - config_path: str - path to config file
            - env_vars_set: list - which env vars are set
            - has_config_file: bool - whether config file exists
    """
    env_vars_set = [var for var in _CREDENTIAL_ENV.values() if os.environ.get(var)]
    env_complete = len(env_vars_set) == len(_CREDENTIAL_ENV)

    has_config_file = CONFIG_PATH.exists()
    config_complete = False
    if has_config_file:
        config = _load_config_from_file()
        config_complete = all(config.get(key) for key in _CREDENTIAL_ENV)

    # Env takes precedence
    source = None
    configured = False
    if env_complete:
        source = "env"
        configured = True
    elif config_complete:
        source = "config"
        configured = True

    return {
        "configured": configured,
        "source": source,
        "config_path": str(CONFIG_PATH),
        "env_vars_set": env_vars_set,
        "has_config_file": has_config_file,
    }


class DeskClient:
    """Async HTTP client for the Zoho Desk API."""

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        org_id: str | None = None,
        data_center: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        If credentials are not provided, they will be loaded from
        environment variables or config file.
        """
        if client_id and client_secret and refresh_token and org_id:
            creds = {
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh_token,
                "org_id": org_id,
                "data_center": data_center or DEFAULT_DATA_CENTER,
            }
        else:
            creds = _get_credentials()

        self.client_id = creds["client_id"]
        self.client_secret = creds["client_secret"]
        self.refresh_token = creds["refresh_token"]
        self.org_id = str(creds["org_id"])
        self.data_center = creds["data_center"]

        self.timeout = timeout
        self.base_url = f"https://desk.zoho.{self.data_center}/api/v1"
        self.token_url = f"https://accounts.zoho.{self.data_center}/oauth/v2/token"
        self._transport = transport
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._departments: list[Department] | None = None

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.timeout)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing it when close to expiry.

        Raises:
            DeskAuthError: If the refresh grant is rejected
        """
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        params = {
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "refresh_token",
        }
        async with self._http() as client:
            try:
                response = await client.post(self.token_url, params=params)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise DeskAuthError(
                    f"Token refresh failed ({e.response.status_code}). Check your Zoho OAuth credentials."
                ) from e
            except httpx.RequestError as e:
                raise DeskAuthError(f"Token refresh failed: {e}") from e

        token = data.get("access_token")
        if not token:
            raise DeskAuthError(f"Token refresh failed: {data.get('error', 'no access_token in response')}")

        expires_in = float(data.get("expires_in", 3600))
        self._access_token = token
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN)
        logger.debug("Refreshed access token, valid for %.0fs", expires_in)
        return token

    # =========================================================================
    # Requests
    # =========================================================================

    def _get_headers(self, token: str) -> dict[str, str]:
        """Get headers for API requests."""
        return {
            "Authorization": f"Zoho-oauthtoken {token}",
            "orgId": self.org_id,
            "Accept": "application/json",
        }

    async def request(
        self,
        method: str,
        endpoint: str,
        token: str,
        params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> dict[str, Any]:
        """Make an API request to Zoho Desk.

        Args:
            method: HTTP method
            endpoint: API endpoint (without base URL)
            token: OAuth access token
            params: Query parameters
            client: Open HTTP client to reuse

        Returns:
            Parsed JSON response; ``{}`` for 204 No Content

        Raises:
            DeskAPIError: On API errors
        """
        if client is None:
            async with self._http() as own_client:
                return await self.request(method, endpoint, token, params, own_client)

        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = await client.request(
                method=method,
                url=url,
                headers=self._get_headers(token),
                params=params,
            )
            response.raise_for_status()
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        except httpx.HTTPStatusError as e:
            error_msg = self._format_http_error(e)
            raise DeskAPIError(error_msg, e.response.status_code) from e
        except httpx.TimeoutException as e:
            raise DeskAPIError(
                "Request timed out. The Zoho Desk API may be slow or unavailable."
            ) from e
        except httpx.RequestError as e:
            raise DeskAPIError(f"Request failed: {e}") from e

    def _format_http_error(self, error: httpx.HTTPStatusError) -> str:
        """Format HTTP error into user-friendly message."""
        status = error.response.status_code

        try:
            data = error.response.json()
            detail = data.get("message") or data.get("errorCode") or str(data)
        except ValueError:
            detail = error.response.text[:200] if error.response.text else ""

        if status == 401:
            return "Authentication failed. Check your Zoho Desk OAuth credentials."
        elif status == 403:
            return f"Permission denied. You don't have access to this resource. {detail}"
        elif status == 404:
            return f"Resource not found. {detail}"
        elif status == 422:
            return f"Invalid request: {detail}"
        elif status == 429:
            return "Rate limit exceeded. Please wait before making more requests."
        elif status >= 500:
            return f"Zoho Desk server error ({status}). Try again later. {detail}"
        else:
            return f"API error ({status}): {detail}"

    async def _paginate(self, endpoint: str, token: str, params: dict[str, Any]) -> list[dict]:
        """Collect every page of a listing until a short page comes back."""
        records: list[dict] = []
        offset = 0
        async with self._http() as client:
            while True:
                page_params = {**params, "from": offset, "limit": PAGE_LIMIT}
                data = await self.request("GET", endpoint, token, page_params, client)
                page = data.get("data") or []
                records.extend(page)
                if len(page) < PAGE_LIMIT:
                    break
                offset += PAGE_LIMIT
        return records

    # =========================================================================
    # Data fetches
    # =========================================================================

    async def fetch_all_tickets(
        self,
        token: str,
        department_ids: list[str] | None = None,
        agent_id: str | None = None,
    ) -> list[Ticket]:
        """Active tickets, optionally narrowed server-side by department and assignee."""
        params: dict[str, Any] = {"include": "assignee,departments"}
        if department_ids:
            params["departmentIds"] = ",".join(department_ids)
        if agent_id:
            params["assignee"] = agent_id

        raw = await self._paginate("tickets", token, params)
        tickets = [Ticket.model_validate({**item, "origin": "active"}) for item in raw]
        logger.info("Fetched %d active tickets", len(tickets))
        return tickets

    async def fetch_all_archived_tickets(self, token: str, department_id: str) -> list[Ticket]:
        """Archived tickets of one department."""
        raw = await self._paginate(
            "tickets/archivedTickets", token, {"departmentId": department_id}
        )
        tickets = [Ticket.model_validate({**item, "origin": "archived"}) for item in raw]
        logger.info("Fetched %d archived tickets for department %s", len(tickets), department_id)
        return tickets

    async def fetch_ticket_metrics_for_tickets(
        self,
        token: str,
        tickets: list[Ticket],
    ) -> list[MetricRow]:
        """Metrics for each ticket, at most ``METRICS_CONCURRENCY`` requests at a time.

        Each row carries the ticket's join key and copies of its agent,
        status, department and creation time.
        """
        semaphore = asyncio.Semaphore(METRICS_CONCURRENCY)
        departments = {d.id: d.name for d in self._departments or []}

        async with self._http() as client:

            async def fetch_one(ticket: Ticket) -> MetricRow | None:
                if not ticket.id:
                    return None
                async with semaphore:
                    data = await self.request("GET", f"tickets/{ticket.id}/metrics", token, client=client)
                return MetricRow.model_validate({
                    **data,
                    "ticketNumber": ticket.key,
                    "id": ticket.id,
                    "agentName": ticket.assignee_name,
                    "status": ticket.status,
                    "departmentId": ticket.department_id,
                    "departmentName": ticket.department_name
                    or departments.get(ticket.department_id or ""),
                    "createdTime": ticket.created_time,
                })

            tasks = [asyncio.create_task(fetch_one(t)) for t in tickets]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                # Siblings must not outlive the shared HTTP client
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        rows = [row for row in results if row is not None]
        logger.info("Fetched metrics for %d tickets", len(rows))
        return rows

    async def list_departments(self, token: str) -> list[Department]:
        """Department directory, cached for the life of the client."""
        if self._departments is None:
            data = await self.request("GET", "departments", token, {"limit": 200})
            self._departments = [Department.model_validate(d) for d in data.get("data") or []]
            logger.info("Loaded %d departments", len(self._departments))
        return self._departments


# Module-level singleton for convenience
_client: DeskClient | None = None


def get_client() -> DeskClient:
    """Get or create the default Desk client singleton."""
    global _client
    if _client is None:
        _client = DeskClient()
    return _client


def reset_client() -> None:
    """Reset the client singleton (useful for testing)."""
    global _client
    _client = None
