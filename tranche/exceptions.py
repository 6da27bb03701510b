"""Shared exceptions for the tracker core."""


class TrancheError(Exception):
    """Base class for domain errors."""


class InstrumentNotFoundError(TrancheError):
    """Raised when an instrument id does not exist."""


class TradeNotFoundError(TrancheError):
    """Raised when a trade id does not exist."""


class InvalidInstrumentError(TrancheError):
    """Raised when instrument parameters would break the tranche-size floor."""


class InvalidTradeError(TrancheError):
    """Raised when a trade is well-formed but not allowed in the current cycle."""


class NoOpenTradesError(TrancheError):
    """Raised when settling an instrument that has no unsettled trades."""


class InsufficientDataError(TrancheError, ValueError):
    """Raised when an indicator needs more observations than were supplied."""


class BackupFormatError(TrancheError):
    """Raised when a backup document is not a valid export."""
