"""
Unit tests for the CLOB gateway.

The py-clob-client instance is replaced with a MagicMock; nothing is signed
or sent.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from shadowtrader.core.config import PolymarketSettings
from shadowtrader.core.errors import InsufficientBalanceError, OrderRejectedError, SetupError
from shadowtrader.domain.market import OrderSide
from shadowtrader.domain.order import OrderInstruction
from shadowtrader.integrations.clob import CLOBGateway, parse_book_levels, quote_from_book, round_to_tick

BOOK = {
    "bids": [{"price": "0.47", "size": "50"}, {"price": "0.49", "size": "20"}, {"price": "0.48", "size": "0"}],
    "asks": [{"price": "0.55", "size": "10"}, {"price": "0.51", "size": "30"}],
}


@pytest.fixture
def settings() -> PolymarketSettings:
    return PolymarketSettings(private_key="0x" + "1" * 64, proxy_wallet="0xbot")


@pytest.fixture
def clob_client() -> MagicMock:
    client = MagicMock()
    client.get_order_book.return_value = BOOK
    client.get_tick_size.return_value = "0.01"
    client.get_balance_allowance.return_value = {"balance": "125500000"}
    client.create_order.return_value = "signed-order"
    client.post_order.return_value = {"success": True, "orderID": "0xorder", "status": "matched"}
    return client


@pytest.fixture
def gateway(settings, clob_client) -> CLOBGateway:
    gw = CLOBGateway(settings, timeout=1.0)
    gw._client = clob_client
    return gw


def instruction(side: OrderSide = OrderSide.SELL, quantity: str = "10.567") -> OrderInstruction:
    return OrderInstruction(
        token_id="token",
        side=side,
        quantity=Decimal(quantity),
        reference_price=Decimal("0.50"),
        label="Market A [Up]",
    )


class TestBookParsing:

    def test_drops_empty_levels(self):
        levels = parse_book_levels(BOOK["bids"])

        assert [level.price for level in levels] == [Decimal("0.47"), Decimal("0.49")]

    def test_quote_sorted_best_first(self):
        quote = quote_from_book("token", BOOK)

        assert quote.best_bid.price == Decimal("0.49")
        assert quote.best_ask.price == Decimal("0.51")

    def test_object_book(self):
        book = MagicMock(bids=[MagicMock(price="0.4", size="1")], asks=[])

        quote = quote_from_book("token", book)

        assert quote.best_bid.price == Decimal("0.4")
        assert quote.best_ask is None


class TestReads:

    @pytest.mark.asyncio
    async def test_get_quote(self, gateway, clob_client):
        quote = await gateway.get_quote("token")

        clob_client.get_order_book.assert_called_once_with("token")
        assert quote.live_price(OrderSide.SELL) == Decimal("0.49")

    @pytest.mark.asyncio
    async def test_get_balance_in_usdc(self, gateway):
        assert await gateway.get_balance() == Decimal("125.5")


class TestTickRounding:

    def test_sell_rounds_down(self):
        assert round_to_tick(Decimal("0.455"), Decimal("0.01"), OrderSide.SELL) == Decimal("0.45")

    def test_buy_rounds_up(self):
        assert round_to_tick(Decimal("0.455"), Decimal("0.01"), OrderSide.BUY) == Decimal("0.46")

    def test_on_grid_price_unchanged(self):
        assert round_to_tick(Decimal("0.455"), Decimal("0.001"), OrderSide.SELL) == Decimal("0.455")


class TestSubmit:

    @pytest.mark.asyncio
    async def test_sell_at_approved_price_fok(self, gateway, clob_client):
        result = await gateway.submit(instruction(), Decimal("0.49"))

        args = clob_client.create_order.call_args.args[0]
        assert args.price == 0.49
        assert args.size == 10.56
        assert args.side == "SELL"
        assert clob_client.post_order.call_args.args[1] == "FOK"
        assert result.order_id == "0xorder"
        assert result.filled_size == Decimal("10.56")
        assert result.side == OrderSide.SELL

    @pytest.mark.asyncio
    async def test_book_not_reread(self, gateway, clob_client):
        clob_client.get_order_book.return_value = {
            "bids": [{"price": "0.40", "size": "100"}],
            "asks": BOOK["asks"],
        }

        result = await gateway.submit(instruction(), Decimal("0.50"))

        clob_client.get_order_book.assert_not_called()
        assert clob_client.create_order.call_args.args[0].price == 0.50
        assert result.price == Decimal("0.50")

    @pytest.mark.asyncio
    async def test_buy_at_approved_price(self, gateway, clob_client):
        await gateway.submit(instruction(OrderSide.BUY, "5"), Decimal("0.51"))

        args = clob_client.create_order.call_args.args[0]
        assert args.price == 0.51
        assert args.side == "BUY"

    @pytest.mark.asyncio
    async def test_sell_price_rounded_down_to_market_tick(self, gateway, clob_client):
        await gateway.submit(instruction(), Decimal("0.455"))

        clob_client.get_tick_size.assert_called_once_with("token")
        assert clob_client.create_order.call_args.args[0].price == 0.45

    @pytest.mark.asyncio
    async def test_fine_tick_keeps_price(self, gateway, clob_client):
        clob_client.get_tick_size.return_value = "0.001"

        await gateway.submit(instruction(), Decimal("0.455"))

        assert clob_client.create_order.call_args.args[0].price == 0.455

    @pytest.mark.asyncio
    async def test_price_rounding_to_zero_rejected(self, gateway, clob_client):
        with pytest.raises(OrderRejectedError, match="outside the tradable range"):
            await gateway.submit(instruction(), Decimal("0.004"))
        clob_client.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_response(self, gateway, clob_client):
        clob_client.post_order.return_value = {"success": False, "errorMsg": "invalid order"}

        with pytest.raises(OrderRejectedError, match="invalid order"):
            await gateway.submit(instruction(), Decimal("0.49"))

    @pytest.mark.asyncio
    async def test_balance_rejection(self, gateway, clob_client):
        clob_client.post_order.return_value = {"success": False, "errorMsg": "not enough balance / allowance"}

        with pytest.raises(InsufficientBalanceError):
            await gateway.submit(instruction(), Decimal("0.49"))

    @pytest.mark.asyncio
    async def test_exception_not_retried(self, gateway, clob_client):
        clob_client.post_order.side_effect = RuntimeError("connection reset")

        with pytest.raises(OrderRejectedError):
            await gateway.submit(instruction(), Decimal("0.49"))
        clob_client.post_order.assert_called_once()


class TestConnect:

    @pytest.mark.asyncio
    async def test_missing_private_key(self):
        gw = CLOBGateway(PolymarketSettings(private_key=""))

        with pytest.raises(SetupError):
            await gw.connect()
