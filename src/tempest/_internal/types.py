"""Shared type aliases for Tempest."""

from __future__ import annotations

# HTTP headers dictionary.
Headers = dict[str, str]

# Pacing delay range (min_seconds, max_seconds).
PacingRange = tuple[float, float]
