"""Shadowtrader - Polymarket copy-trading reconciler.

Mirrors a tracked trader's positions into a bot wallet and unwinds bot
holdings the trader has exited, with every order gated by a slippage and
order book depth guard.
"""

__version__ = "0.1.0"
