"""Polymarket data API client for positions and activity.

The data API is read-only and public; it backs both the reconciliation
pass and the dashboard. Every request carries an explicit timeout and is
retried on transient transport errors.
"""

from typing import Any, Optional

import httpx
import structlog

from shadowtrader.core.errors import ShadowTraderError
from shadowtrader.core.retry import retry_transient, wrap_external_error
from shadowtrader.domain.position import ActivityRecord, Position

log = structlog.get_logger()

DEFAULT_POSITIONS_LIMIT = 100
DEFAULT_ACTIVITY_LIMIT = 50
MAX_POSITION_PAGES = 50
USER_AGENT = "shadowtrader"


class DataApiError(ShadowTraderError):
    """Error from data API client."""

    pass


class DataApiClient:
    """Async HTTP client for the Polymarket data API."""

    def __init__(
        self,
        base_url: str = "https://data-api.polymarket.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the data API client.

        Args:
            base_url: Data API base URL.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (tests, proxies).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._log = log.bind(component="data_api")

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
        self._log.info("data_api_connected", base_url=self._base_url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DataApiClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            raise DataApiError("Client not connected. Call connect() first.")
        return self._client

    @retry_transient(log_context={"client": "data_api"})
    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        client = self._ensure_connected()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
        except (httpx.HTTPStatusError, httpx.TransportError) as e:
            raise wrap_external_error(e, f"GET {path}") from e
        return response.json()

    async def get_positions_raw(
        self,
        address: str,
        limit: int = DEFAULT_POSITIONS_LIMIT,
        offset: int = 0,
    ) -> list[dict]:
        params: dict[str, Any] = {"user": address, "limit": limit}
        if offset:
            params["offset"] = offset
        data = await self._get_json("/positions", params)
        if not isinstance(data, list):
            raise DataApiError(f"Unexpected /positions payload for {address}: {type(data).__name__}")
        return data

    async def get_activity_raw(self, address: str, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[dict]:
        data = await self._get_json("/activity", {"user": address, "limit": limit})
        if not isinstance(data, list):
            raise DataApiError(f"Unexpected /activity payload for {address}: {type(data).__name__}")
        return data

    async def get_positions(
        self,
        address: str,
        limit: int = DEFAULT_POSITIONS_LIMIT,
        offset: int = 0,
    ) -> list[Position]:
        """One page of positions (open and closed) held by ``address``."""
        return [Position.from_api(item) for item in await self.get_positions_raw(address, limit, offset)]

    async def get_all_positions(self, address: str, page_size: int = DEFAULT_POSITIONS_LIMIT) -> list[Position]:
        """Every position held by ``address``.

        Pages with ``offset`` until the API returns a short page.

        Raises:
            DataApiError: If pages are still full after MAX_POSITION_PAGES;
                a partial list is never returned.
        """
        items: list[dict] = []
        for page in range(MAX_POSITION_PAGES):
            batch = await self.get_positions_raw(address, limit=page_size, offset=page * page_size)
            items.extend(batch)
            if len(batch) < page_size:
                self._log.debug("positions_paged", address=address, pages=page + 1, positions=len(items))
                return [Position.from_api(item) for item in items]
        raise DataApiError(
            f"/positions for {address} still returning full pages after {MAX_POSITION_PAGES} x {page_size}"
        )

    async def get_activity(self, address: str, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[ActivityRecord]:
        """Recent activity for ``address``, newest first."""
        return [ActivityRecord.from_api(item) for item in await self.get_activity_raw(address, limit)]
