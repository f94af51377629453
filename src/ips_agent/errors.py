"""
Exception types shared across the IPS Agent.

Every failure in the request pipeline is expressed as one of these types and
ends either in a reply to the originating peer or in a log entry.
"""


class IpsAgentError(Exception):
    """Base class for all agent errors."""
    pass


class DecodeError(IpsAgentError):
    """Raised when an inbound peer message cannot be decoded."""
    pass


class LocateError(IpsAgentError):
    """Raised by a directory probe that could not complete its search."""
    pass


class ArchiveError(IpsAgentError):
    """Raised when reading, writing or finalizing an archive fails."""
    pass


class DeliveryError(IpsAgentError):
    """Raised when sending a frame to a single peer fails."""
    pass


class ConfigurationError(IpsAgentError):
    """Raised when configuration parsing or validation fails."""
    pass
