"""Configuration module."""

from soar_engine.config.settings import (
    AutomationConfig,
    AutomationLevel,
    ExecutionConfig,
    NotificationConfig,
    PlaybookCategoryConfig,
    Settings,
    SOARConfig,
    ThresholdConfig,
    settings,
)

__all__ = [
    "Settings",
    "settings",
    "SOARConfig",
    "AutomationConfig",
    "AutomationLevel",
    "PlaybookCategoryConfig",
    "NotificationConfig",
    "ThresholdConfig",
    "ExecutionConfig",
]
