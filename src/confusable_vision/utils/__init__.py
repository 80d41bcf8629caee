"""Utility functions for confusable_vision.

This module provides utility functions including:

- Logging setup and configuration
- Scoring statistics and progress logging
"""

from confusable_vision.utils.logging import (
    ScoringLogger,
    ScoringStats,
    configure_logging,
)

__all__ = [
    "ScoringLogger",
    "ScoringStats",
    "configure_logging",
]
