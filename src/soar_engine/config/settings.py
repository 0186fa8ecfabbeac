"""
SOAR Engine Configuration Settings

Centralized configuration management using Pydantic Settings.
Supports environment variables and .env files.

The engine itself is configured through ``SOARConfig``: automation flags,
playbook category toggles, notification channels, decision thresholds and
simulation timing. ``Settings`` wraps it for process-level configuration.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from soar_engine.errors import ConfigurationError


class AutomationLevel(str, Enum):
    """How far the engine may go without a human in the loop."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AutomationConfig(BaseModel):
    """Automation switches."""
    model_config = ConfigDict(extra="forbid")

    enable_automated_response: bool = True
    enable_playbook_execution: bool = True
    enable_ml_decision_making: bool = True
    max_automation_level: AutomationLevel = AutomationLevel.MEDIUM
    # When set, automated steps of a type above max_automation_level run as manual steps
    enforce_automation_level: bool = False


class PlaybookCategoryConfig(BaseModel):
    """Per-category playbook toggles."""
    model_config = ConfigDict(extra="forbid")

    enable_incident_containment: bool = True
    enable_threat_hunting: bool = True
    enable_forensic_collection: bool = True
    enable_recovery_procedures: bool = True


class NotificationConfig(BaseModel):
    """Notification channels used by notify/escalate actions."""
    model_config = ConfigDict(extra="forbid")

    enable_slack_integration: bool = False
    enable_email_alerts: bool = True
    enable_sms_alerts: bool = False
    enable_webhook_notifications: bool = True

    def enabled_channels(self) -> list[str]:
        channels = []
        if self.enable_slack_integration:
            channels.append("slack")
        if self.enable_email_alerts:
            channels.append("email")
        if self.enable_sms_alerts:
            channels.append("sms")
        if self.enable_webhook_notifications:
            channels.append("webhook")
        return channels


class ThresholdConfig(BaseModel):
    """Decision thresholds (0-1)."""
    model_config = ConfigDict(extra="forbid")

    critical_incident_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    automated_response_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    escalation_threshold: float = Field(default=0.95, ge=0.0, le=1.0)


class ExecutionConfig(BaseModel):
    """
    Timing of the simulated integrations.

    ``action_delay`` stands in for the latency of a real integration call.
    ``manual_step_wait`` caps how long a manual step is simulated to take.
    """
    model_config = ConfigDict(extra="forbid")

    action_delay: float = Field(default=0.01, ge=0.0, description="Seconds per simulated action")
    manual_step_wait: float = Field(default=0.05, ge=0.0, description="Max seconds per manual step")


class SOARConfig(BaseModel):
    """
    Validated engine configuration.

    Every section is optional; missing values fall back to defaults that
    produce a usable engine with automation enabled.
    """
    model_config = ConfigDict(extra="forbid")

    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    playbooks: PlaybookCategoryConfig = Field(default_factory=PlaybookCategoryConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    thresholds: ThresholdConfig = Field(default_factory=ThresholdConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)

    @classmethod
    def from_partial(cls, data: Optional[dict[str, Any]] = None) -> "SOARConfig":
        """Validate a partial configuration mapping, filling in defaults."""
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid SOAR configuration: {e}") from e


class Settings(BaseSettings):
    """
    Process configuration.

    All settings can be configured via environment variables with the SOAR_ prefix.
    Nested engine values use a double underscore, for example
    SOAR_ENGINE__THRESHOLDS__AUTOMATED_RESPONSE_THRESHOLD=0.7
    """

    model_config = SettingsConfigDict(
        env_prefix="SOAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=True, description="Render logs as JSON lines")
    engine: SOARConfig = Field(default_factory=SOARConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper


# Global settings instance
settings = Settings()
