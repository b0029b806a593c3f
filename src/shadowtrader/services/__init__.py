"""Services - matching, guarded execution, reconciliation and copy trading."""

from shadowtrader.services.analytics import (
    PortfolioSummary,
    TradeSlippage,
    average_copy_delay,
    average_size_ratio,
    average_trade_slippage,
    copy_delays,
    portfolio_summary,
    trade_slippages,
)
from shadowtrader.services.copy_trade import CopyTradeDriver
from shadowtrader.services.execution import (
    ExecutionOutcome,
    ExecutionRetryLoop,
    LoopState,
)
from shadowtrader.services.guard import Decision, GuardDecision, SlippageGuard
from shadowtrader.services.matcher import (
    MatchedPair,
    MatchResult,
    PositionMatcher,
    match_positions,
)
from shadowtrader.services.reconciliation import (
    BalanceLedger,
    ReconcileReport,
    ReconciliationDriver,
)
from shadowtrader.services.snapshot import PortfolioSnapshot, SnapshotFetcher

__all__ = [
    "PositionMatcher",
    "MatchedPair",
    "MatchResult",
    "match_positions",
    "SlippageGuard",
    "GuardDecision",
    "Decision",
    "ExecutionRetryLoop",
    "ExecutionOutcome",
    "LoopState",
    "ReconciliationDriver",
    "ReconcileReport",
    "BalanceLedger",
    "CopyTradeDriver",
    "PortfolioSnapshot",
    "SnapshotFetcher",
    "PortfolioSummary",
    "portfolio_summary",
    "average_size_ratio",
    "average_copy_delay",
    "copy_delays",
    "TradeSlippage",
    "trade_slippages",
    "average_trade_slippage",
]
