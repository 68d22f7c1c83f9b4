"""
Exception types raised by the load tester.

Per-session failures never propagate out of a session; they are recorded
on the session's ClientResult. These exceptions cover the places where
something does have to be raised: audio streaming inside a session and
fatal configuration problems at the top level.
"""


class LoadTestError(Exception):
    """Base class for load tester errors."""


class ConfigError(LoadTestError):
    """Configuration file is missing or malformed."""


class StreamingError(LoadTestError):
    """Audio could not be read or sent over the connection."""
