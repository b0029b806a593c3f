"""Polymarket CLOB gateway: quotes, balance and order submission.

Wraps the synchronous py-clob-client library with asyncio support using a
thread pool executor. Every call is bounded by a timeout. Reads are
retried on transient errors; order submission never is.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from decimal import ROUND_DOWN, ROUND_UP, Decimal
from typing import Any, Optional

import structlog
from py_clob_client.client import ClobClient
from py_clob_client.clob_types import (
    ApiCreds,
    AssetType,
    BalanceAllowanceParams,
    OrderArgs,
    OrderType,
)
from py_clob_client.order_builder.constants import BUY, SELL

from shadowtrader.core.config import PolymarketSettings
from shadowtrader.core.errors import (
    InsufficientBalanceError,
    OrderRejectedError,
    RequestTimeoutError,
    SetupError,
    ShadowTraderError,
)
from shadowtrader.core.retry import retry_transient, wrap_external_error
from shadowtrader.domain.market import BookLevel, OrderSide, Quote
from shadowtrader.domain.order import OrderInstruction, OrderResult

log = structlog.get_logger()

POLYGON_CHAIN_ID = 137
USDC_DECIMALS = Decimal("1e6")
SHARE_PRECISION = Decimal("0.01")


class CLOBGatewayError(ShadowTraderError):
    """Base error from the CLOB gateway."""

    pass


def parse_book_levels(levels: Any) -> list[BookLevel]:
    """Parse order book levels from dict or object responses, dropping empty ones."""
    result = []
    for level in levels or []:
        if isinstance(level, dict):
            price, size = level.get("price", 0), level.get("size", 0)
        else:
            price, size = getattr(level, "price", 0), getattr(level, "size", 0)
        price, size = Decimal(str(price)), Decimal(str(size))
        if size > 0:
            result.append(BookLevel(price=price, size=size))
    return result


def round_to_tick(price: Decimal, tick: Decimal, side: OrderSide) -> Decimal:
    """Snap ``price`` onto the tick grid without moving it away from the book.

    SELL limits round down and BUY limits round up, so an order priced at
    the best level still crosses it.
    """
    rounding = ROUND_UP if side == OrderSide.BUY else ROUND_DOWN
    return ((price / tick).to_integral_value(rounding=rounding) * tick).quantize(tick)


def rejection(message: str, cause: Optional[Exception] = None) -> OrderRejectedError:
    if "balance" in message.lower() or "allowance" in message.lower():
        return InsufficientBalanceError(message, cause=cause)
    return OrderRejectedError(message, cause=cause)


def quote_from_book(token_id: str, raw_book: Any) -> Quote:
    if isinstance(raw_book, dict):
        raw_bids, raw_asks = raw_book.get("bids"), raw_book.get("asks")
    else:
        raw_bids, raw_asks = getattr(raw_book, "bids", []), getattr(raw_book, "asks", [])

    return Quote(
        token_id=token_id,
        bids=tuple(sorted(parse_book_levels(raw_bids), key=lambda x: x.price, reverse=True)),
        asks=tuple(sorted(parse_book_levels(raw_asks), key=lambda x: x.price)),
    )


class CLOBGateway:
    """Quote source, balance source and order sink backed by py-clob-client.

    Orders are fill-or-kill limit orders at the price the guard approved, so
    a submission either executes at that level (or better) or is rejected
    outright.
    """

    def __init__(
        self,
        settings: PolymarketSettings,
        executor: Optional[ThreadPoolExecutor] = None,
        timeout: Optional[float] = None,
    ):
        self._settings = settings
        self._executor = executor or ThreadPoolExecutor(max_workers=4)
        self._timeout = timeout if timeout is not None else settings.request_timeout_seconds
        self._client: Optional[ClobClient] = None
        self._log = log.bind(component="clob_gateway")

    async def connect(self) -> None:
        """Create the CLOB client and its API credentials.

        Raises:
            SetupError: If the client cannot be created.
        """
        if self._client is not None:
            return
        if not self._settings.private_key:
            raise SetupError("PRIVATE_KEY is not configured")

        settings = self._settings

        def create_client() -> ClobClient:
            client = ClobClient(
                host=settings.clob_http_url.rstrip("/"),
                key=settings.private_key,
                chain_id=POLYGON_CHAIN_ID,
                signature_type=settings.signature_type,
                funder=settings.proxy_wallet or None,
            )
            if settings.clob_api_key:
                creds = ApiCreds(
                    api_key=settings.clob_api_key,
                    api_secret=settings.clob_secret,
                    api_passphrase=settings.clob_pass_phrase,
                )
            else:
                creds = client.create_or_derive_api_creds()
            client.set_api_creds(creds)
            return client

        try:
            self._client = await self._run_sync(create_client)
        except Exception as e:
            raise SetupError("Failed to create CLOB client", cause=e) from e
        self._log.info("clob_gateway_connected", url=settings.clob_http_url)

    async def close(self) -> None:
        self._client = None
        self._executor.shutdown(wait=False)

    async def __aenter__(self) -> "CLOBGateway":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_connected(self) -> ClobClient:
        if self._client is None:
            raise CLOBGatewayError("Client not connected. Call connect() first.")
        return self._client

    async def _run_sync(self, func, *args, **kwargs):
        """Run a synchronous client call in the thread pool, with a timeout."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(self._executor, lambda: func(*args, **kwargs)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            name = getattr(func, "__name__", "clob call")
            raise RequestTimeoutError(f"{name} timed out after {self._timeout}s", cause=e) from e

    # =========================================================================
    # Reads
    # =========================================================================

    @retry_transient(log_context={"client": "clob", "operation": "get_quote"})
    async def get_quote(self, token_id: str) -> Quote:
        """Current top of book for ``token_id``."""
        client = self._ensure_connected()
        try:
            raw_book = await self._run_sync(client.get_order_book, token_id)
        except ShadowTraderError:
            raise
        except Exception as e:
            raise wrap_external_error(e, f"order book {token_id}") from e
        return quote_from_book(token_id, raw_book)

    @retry_transient(log_context={"client": "clob", "operation": "get_balance"})
    async def get_balance(self) -> Decimal:
        """Available USDC collateral for the bot wallet."""
        client = self._ensure_connected()
        params = BalanceAllowanceParams(asset_type=AssetType.COLLATERAL)
        try:
            raw = await self._run_sync(client.get_balance_allowance, params)
        except ShadowTraderError:
            raise
        except Exception as e:
            raise wrap_external_error(e, "balance") from e
        return Decimal(str(raw.get("balance", 0))) / USDC_DECIMALS

    @retry_transient(log_context={"client": "clob", "operation": "get_tick_size"})
    async def get_tick_size(self, token_id: str) -> Decimal:
        """Minimum price increment for ``token_id``."""
        client = self._ensure_connected()
        try:
            raw = await self._run_sync(client.get_tick_size, token_id)
        except ShadowTraderError:
            raise
        except Exception as e:
            raise wrap_external_error(e, f"tick size {token_id}") from e
        return Decimal(str(raw))

    # =========================================================================
    # Order submission
    # =========================================================================

    async def submit(self, instruction: OrderInstruction, limit_price: Decimal) -> OrderResult:
        """Place one fill-or-kill order limited to ``limit_price``.

        ``limit_price`` is the live level the guard approved. The book is not
        re-read here: if it has moved past that level the exchange kills the
        order instead of filling it at a worse price.

        Raises:
            OrderRejectedError: If the price or size is unusable or the
                exchange rejects the order.
            InsufficientBalanceError: If the exchange reports too little
                balance or allowance.
            RequestTimeoutError: If signing or posting times out.
        """
        client = self._ensure_connected()
        size = instruction.quantity.quantize(SHARE_PRECISION, rounding=ROUND_DOWN)
        if size <= 0:
            raise OrderRejectedError(f"Order size {instruction.quantity} rounds to zero")

        tick = await self.get_tick_size(instruction.token_id)
        price = round_to_tick(limit_price, tick, instruction.side)
        if price < tick or price > 1 - tick:
            raise OrderRejectedError(
                f"Limit price {limit_price} is outside the tradable range at tick {tick}"
            )

        args = OrderArgs(
            token_id=instruction.token_id,
            price=float(price),
            size=float(size),
            side=BUY if instruction.side == OrderSide.BUY else SELL,
        )
        self._log.info(
            "placing_order",
            label=instruction.label,
            side=instruction.side.value,
            approved_price=str(limit_price),
            price=str(price),
            tick_size=str(tick),
            size=str(size),
        )

        try:
            signed = await self._run_sync(client.create_order, args)
            response = await self._run_sync(client.post_order, signed, OrderType.FOK)
        except ShadowTraderError:
            raise
        except Exception as e:
            raise rejection(f"Order failed: {e}", cause=e) from e

        if not isinstance(response, dict):
            response = getattr(response, "__dict__", {}) or {}
        if not response.get("success", False):
            reason = response.get("errorMsg") or response.get("error") or "unknown"
            raise rejection(f"Order rejected: {reason}")

        status = str(response.get("status", "matched")).upper()
        filled = size if status in ("MATCHED", "FILLED") else Decimal("0")
        return OrderResult(
            order_id=str(response.get("orderID") or response.get("orderId") or ""),
            token_id=instruction.token_id,
            side=instruction.side,
            price=price,
            size=size,
            status=status,
            filled_size=filled,
            raw=response,
        )
