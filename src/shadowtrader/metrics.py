"""Prometheus metrics for Shadowtrader."""

from prometheus_client import Counter, Gauge, Histogram, Info

BOT_INFO = Info("shadowtrader", "Shadowtrader build information")

# Guard metrics
GUARD_DECISIONS_TOTAL = Counter(
    "shadowtrader_guard_decisions_total",
    "Slippage guard decisions",
    ["decision", "side"],
)

GUARD_ADVERSE_DRIFT_PCT = Histogram(
    "shadowtrader_guard_adverse_drift_pct",
    "Adverse price drift seen by the guard, in percent",
    ["side"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 25],
)

# Execution metrics
EXECUTION_OUTCOMES_TOTAL = Counter(
    "shadowtrader_execution_outcomes_total",
    "Terminal outcomes of the execution retry loop",
    ["state", "caller"],
)

EXECUTION_WAIT_SECONDS = Histogram(
    "shadowtrader_execution_wait_seconds",
    "Time spent waiting on guard retries per task",
    ["caller"],
    buckets=[0, 1, 5, 30, 60, 120, 300, 600],
)

# Reconciliation metrics
RECONCILE_PASSES_TOTAL = Counter(
    "shadowtrader_reconcile_passes_total",
    "Reconciliation passes completed",
)

STALE_POSITIONS = Gauge(
    "shadowtrader_stale_positions",
    "Bot-only open positions found in the last pass",
)

MATCH_RATE = Gauge(
    "shadowtrader_match_rate_pct",
    "Percent of trader open positions mirrored by the bot",
)


def init_metrics(version: str) -> None:
    """Initialize bot info metric."""
    BOT_INFO.info({"version": version})


def record_guard_decision(decision: str, side: str, adverse_drift_pct: float | None = None) -> None:
    GUARD_DECISIONS_TOTAL.labels(decision=decision, side=side).inc()
    if adverse_drift_pct is not None and adverse_drift_pct > 0:
        GUARD_ADVERSE_DRIFT_PCT.labels(side=side).observe(adverse_drift_pct)


def record_execution_outcome(state: str, caller: str, waited_seconds: float) -> None:
    EXECUTION_OUTCOMES_TOTAL.labels(state=state, caller=caller).inc()
    EXECUTION_WAIT_SECONDS.labels(caller=caller).observe(waited_seconds)
