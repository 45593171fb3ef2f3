"""Custom exceptions for clearer error handling across the bot."""


class TradeGuardError(Exception):
    """Base exception for all bot-specific errors."""


class ConfigError(TradeGuardError, ValueError):
    """Raised when environment configuration is invalid or missing."""


class DataProviderError(TradeGuardError):
    """Raised when market data retrieval fails."""


class OracleError(TradeGuardError):
    """Raised when the decision oracle cannot produce a verdict."""


class BrokerError(TradeGuardError):
    """Raised when order submission fails."""


class LedgerError(TradeGuardError):
    """Raised when the ledger store cannot complete an operation."""


class ModeTransitionError(TradeGuardError, ValueError):
    """Raised on a risk mode change the state machine does not allow."""
