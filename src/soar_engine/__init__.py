"""
SOAR Engine: Security Orchestration, Automation and Response

Matches security events to response playbooks, runs their steps
(automated or manual) with retries, escalates critical events, and
records auditable execution and action outcomes.
"""

__version__ = "0.1.0"

from soar_engine.config.settings import Settings, SOARConfig

__all__ = ["Settings", "SOARConfig", "__version__"]
