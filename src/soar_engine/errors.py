"""
SOAR Engine Errors

Lifecycle, configuration and validation problems are raised to the caller.
Action and step failures are normally recorded on the execution and action
records instead; these classes are what gets recorded.
"""

from typing import Optional


class SOARError(Exception):
    """Base exception for SOAR engine errors."""


class ConfigurationError(SOARError):
    """Engine configuration failed validation."""


class PlaybookValidationError(SOARError):
    """A playbook definition failed validation."""

    def __init__(self, message: str, playbook_id: Optional[str] = None):
        super().__init__(message)
        self.playbook_id = playbook_id


class EngineStateError(SOARError):
    """Engine lifecycle misuse."""


class EngineNotRunningError(EngineStateError):
    def __init__(self, message: str = "SOAR engine is not running"):
        super().__init__(message)


class EngineAlreadyRunningError(EngineStateError):
    def __init__(self, message: str = "SOAR engine is already running"):
        super().__init__(message)


class UnknownActionError(SOARError):
    """The action type is not in the dispatch table."""

    def __init__(self, action_type: str):
        super().__init__(f"Unknown action type: {action_type}")
        self.action_type = action_type


class ActionExecutionError(SOARError):
    """A response action reported failure during a step."""

    def __init__(
        self,
        message: str,
        action_type: str,
        action_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.action_type = action_type
        self.action_id = action_id


class StepTimeoutError(SOARError):
    """An automated step ran past its deadline."""

    def __init__(self, step_id: str, timeout: float):
        super().__init__(f"Step {step_id} exceeded timeout of {timeout}s")
        self.step_id = step_id
        self.timeout = timeout
