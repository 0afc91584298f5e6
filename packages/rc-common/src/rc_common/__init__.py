"""
rc-common: Shared library for Relaycast.

Provides common data models, configuration management, the error
taxonomy, structured logging, the clock abstraction, and Prometheus
metric definitions used across the relay, chat and gateway packages.
"""

from rc_common.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
