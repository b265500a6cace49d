"""Exception hierarchy for tagwatch."""

from __future__ import annotations


class TagwatchError(Exception):
    """Base class for all tagwatch errors."""


class ConfigError(TagwatchError):
    """Configuration file is missing, malformed, or fails validation."""


class CompanyIdentifiersError(TagwatchError):
    """The company identifier table could not be loaded."""


class AdapterUnavailableError(TagwatchError):
    """The Bluetooth adapter could not be enabled for scanning."""
