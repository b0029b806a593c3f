"""Unit tests; no network access."""
