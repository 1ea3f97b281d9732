"""Exception types for pystatsview."""


class StatsviewError(Exception):
    """Base class for pystatsview errors."""


class ConfigurationError(StatsviewError):
    """Raised when settings cannot produce a working dashboard."""


class SourceNotBoundError(StatsviewError):
    """Raised when a metric source is served before being bound to a scheduler."""
