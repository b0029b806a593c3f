"""Portfolio snapshots for the tracked traders and the bot wallet.

Trader feeds are read concurrently (read-only, independent); nothing here
touches orders.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

import structlog

from shadowtrader.core.errors import SetupError
from shadowtrader.domain.position import ActivityRecord, Position

log = structlog.get_logger()


class PositionsFeed(Protocol):
    async def get_positions(self, address: str, limit: int = ...) -> List[Position]: ...

    async def get_all_positions(self, address: str) -> List[Position]: ...

    async def get_activity(self, address: str, limit: int = ...) -> List[ActivityRecord]: ...


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Positions of every tracked trader and of the bot at one point in time."""

    trader_positions: Dict[str, List[Position]]
    bot_address: str
    bot_positions: List[Position]
    taken_at: float = field(default_factory=time.time)

    @property
    def all_trader_positions(self) -> List[Position]:
        """Union of all traders' positions, in configured trader order."""
        merged: List[Position] = []
        for positions in self.trader_positions.values():
            merged.extend(positions)
        return merged


class SnapshotFetcher:
    """Fetches position and activity snapshots from the data API.

    Raises:
        SetupError: If no trader address or no bot address is given. With
            no tracked trader every bot position would look stale.
    """

    def __init__(self, feed: PositionsFeed, trader_addresses: Sequence[str], bot_address: str):
        if not trader_addresses:
            raise SetupError("USER_ADDRESSES is not configured")
        if not bot_address:
            raise SetupError("PROXY_WALLET is not configured")
        self._feed = feed
        self.trader_addresses = list(trader_addresses)
        self.bot_address = bot_address
        self._log = log.bind(component="snapshot")

    async def _positions_for(self, address: str, limit: Optional[int]) -> List[Position]:
        if limit is None:
            return await self._feed.get_all_positions(address)
        return await self._feed.get_positions(address, limit=limit)

    async def positions(self, limit: Optional[int] = None) -> PortfolioSnapshot:
        """Snapshot every address.

        ``limit=None`` pages through each address's full position list;
        reconciliation relies on that. A numeric ``limit`` reads one page.
        """
        trader_results = await asyncio.gather(
            *(self._positions_for(address, limit) for address in self.trader_addresses)
        )
        bot_positions = await self._positions_for(self.bot_address, limit)

        snapshot = PortfolioSnapshot(
            trader_positions=dict(zip(self.trader_addresses, trader_results)),
            bot_address=self.bot_address,
            bot_positions=bot_positions,
        )
        self._log.info(
            "positions_snapshot",
            traders=len(self.trader_addresses),
            trader_positions=len(snapshot.all_trader_positions),
            bot_positions=len(bot_positions),
            complete=limit is None,
        )
        return snapshot

    async def activity(self, limit: int = 50) -> tuple[Dict[str, List[ActivityRecord]], List[ActivityRecord]]:
        trader_results = await asyncio.gather(
            *(self._feed.get_activity(address, limit=limit) for address in self.trader_addresses)
        )
        bot_activity = await self._feed.get_activity(self.bot_address, limit=limit)
        return dict(zip(self.trader_addresses, trader_results)), bot_activity
