"""External service integrations - Polymarket data API and CLOB."""

from shadowtrader.integrations.clob import CLOBGateway, CLOBGatewayError
from shadowtrader.integrations.data_api import DataApiClient, DataApiError

__all__ = [
    "CLOBGateway",
    "CLOBGatewayError",
    "DataApiClient",
    "DataApiError",
]
