"""Typed exceptions for the simulation engine.

Every exception carries a machine-readable ``code`` class attribute and keeps
its structured inputs as attributes so callers never parse messages.
Expected player mistakes (floor violations, cap overruns, overdrafts) are not
exceptions; they are returned as typed results by the budget resolver and
the account ledger.
"""

from __future__ import annotations

from typing import Any


class SnowballError(Exception):
    """Base exception for all engine errors."""

    code: str = "SNOWBALL_ERROR"


class ConfigurationError(SnowballError):
    """A rule, market or account is unknown or inconsistent for the active rule set."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, *, rule: str | None = None, context: dict[str, Any] | None = None):
        self.rule = rule
        self.context = dict(context or {})
        super().__init__(message)


class UnknownAccountTypeError(ConfigurationError):
    code: str = "UNKNOWN_ACCOUNT_TYPE"

    def __init__(self, account_id: str, market_id: str):
        self.account_id = account_id
        self.market_id = market_id
        super().__init__(
            f"Account type {account_id!r} is not offered in market {market_id!r}",
            rule="available_accounts",
            context={"account_id": account_id, "market_id": market_id},
        )


class UnknownMarketError(ConfigurationError):
    code: str = "UNKNOWN_MARKET"

    def __init__(self, market_id: str):
        self.market_id = market_id
        super().__init__(f"Unknown market {market_id!r}", rule="market_registry", context={"market_id": market_id})


class RuleVersionError(ConfigurationError):
    """No rule table covers the requested year."""

    code: str = "RULE_VERSION_NOT_FOUND"

    def __init__(self, table: str, year: int):
        self.table = table
        self.year = year
        super().__init__(f"{table}: no rule version effective for {year}", rule=table, context={"year": year})


class CurrencyMismatchError(ConfigurationError):
    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(
            f"Currency mismatch: {currency1} vs {currency2}",
            rule="money",
            context={"currency1": currency1, "currency2": currency2},
        )


class InvariantViolation(SnowballError):
    """An internal consistency rule was broken; the month transition is aborted."""

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, message: str, *, rule: str, context: dict[str, Any] | None = None):
        self.rule = rule
        self.context = dict(context or {})
        super().__init__(f"{rule}: {message}")


class InputValidationError(SnowballError, ValueError):
    """A rule function received an input outside its domain, e.g. negative gross income."""

    code: str = "INPUT_VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(f"{field}: {message}")


class SessionStateError(SnowballError):
    """A session operation was called out of order."""

    code: str = "SESSION_STATE_ERROR"

    def __init__(self, message: str, *, operation: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")
