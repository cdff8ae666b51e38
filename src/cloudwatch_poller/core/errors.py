"""Exceptions raised by cloudwatch_poller."""


class PollerError(Exception):
    """Base class for poller errors."""


class ConfigError(PollerError, ValueError):
    """Raised when the poller configuration is invalid."""
