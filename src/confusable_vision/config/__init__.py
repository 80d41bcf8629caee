"""Configuration management for confusable_vision.

This module provides configuration management using Pydantic models.
Configuration can be provided via a JSON settings file, CLI arguments or
defaults.

Key classes:
- RenderConfig: Canvas and font size used for rendering
- NormalizeConfig: Canonical size, ink threshold and crop margin
- FilterConfig: Ink-coverage, width-ratio and pHash filters
- ScoringConfig: SSIM implementation selection
- ProcessingConfig: Worker pool settings
- FontConfig: Font definitions and fallback directories
- LoggingConfig: Logging settings
- ConfusableVisionSettings: Main application settings
"""

from confusable_vision.config.settings import (
    DEFAULT_FONT_DEFINITIONS,
    ConfusableVisionSettings,
    ExecutorKind,
    FilterConfig,
    FontConfig,
    FontDefinition,
    LoggingConfig,
    NormalizeConfig,
    ProcessingConfig,
    RenderConfig,
    ScoringConfig,
    SsimMethod,
    get_default_settings,
    load_settings,
)

__all__ = [
    "DEFAULT_FONT_DEFINITIONS",
    "ConfusableVisionSettings",
    "ExecutorKind",
    "FilterConfig",
    "FontConfig",
    "FontDefinition",
    "LoggingConfig",
    "NormalizeConfig",
    "ProcessingConfig",
    "RenderConfig",
    "ScoringConfig",
    "SsimMethod",
    "get_default_settings",
    "load_settings",
]
