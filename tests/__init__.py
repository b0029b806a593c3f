"""Shadowtrader test suite."""
