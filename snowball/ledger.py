"""Account ledger: balances, FIFO lots, annual contribution caps and state matches."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from .cost_basis import Lot, LotSlice, grow_lots, lots_cost, lots_value, take_fifo
from .errors import InputValidationError, InvariantViolation
from .logging_config import get_logger
from .market import MarketProfile
from .money import Money
from .timeline import GameMonth

logger = get_logger("ledger")


@dataclass(frozen=True, slots=True)
class AccountState:
    account_id: str
    currency: str
    lots: tuple[Lot, ...] = ()
    contributed_this_year: Money | None = None
    matched_this_year: Money | None = None

    def __post_init__(self) -> None:
        if self.contributed_this_year is None:
            object.__setattr__(self, "contributed_this_year", Money.zero(self.currency))
        if self.matched_this_year is None:
            object.__setattr__(self, "matched_this_year", Money.zero(self.currency))

    @property
    def balance(self) -> Money:
        return lots_value(self.lots, self.currency)

    @property
    def cost_basis(self) -> Money:
        return lots_cost(self.lots, self.currency)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "lots": [
                {"cost": lot.cost.to_json(), "value": lot.value.to_json(), "acquired": str(lot.acquired)} for lot in self.lots
            ],
            "contributed_this_year": self.contributed_this_year.to_json(),
            "matched_this_year": self.matched_this_year.to_json(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], currency: str) -> AccountState:
        lots = tuple(
            Lot(
                cost=Money.from_json(item["cost"], currency),
                value=Money.from_json(item["value"], currency),
                acquired=GameMonth.parse(item["acquired"]),
            )
            for item in data.get("lots", [])
        )
        return cls(
            account_id=data["account_id"],
            currency=currency,
            lots=lots,
            contributed_this_year=Money.from_json(data.get("contributed_this_year", "0"), currency),
            matched_this_year=Money.from_json(data.get("matched_this_year", "0"), currency),
        )


@dataclass(frozen=True, slots=True)
class ContributionAccepted:
    account_id: str
    amount: Money
    contributed_this_year: Money
    remaining_cap: Money | None
    deductible: bool

    accepted = True


@dataclass(frozen=True, slots=True)
class CapExceeded:
    """A contribution larger than the cap room left this year; nothing was credited.

    ``remaining_cap`` is the amount that could still be contributed this year.
    """

    account_id: str
    requested: Money
    remaining_cap: Money
    annual_cap: Money

    accepted = False


ContributionOutcome = ContributionAccepted | CapExceeded


@dataclass(frozen=True, slots=True)
class DisposalOutcome:
    account_id: str
    proceeds: Money
    slices: tuple[LotSlice, ...]
    tax: Money
    exempt_slices: int = 0

    @property
    def gain(self) -> Money:
        return Money.total((item.gain for item in self.slices), self.proceeds.currency)

    @property
    def net_proceeds(self) -> Money:
        return self.proceeds - self.tax


@dataclass(slots=True)
class AccountLedger:
    """Mutable working copy of the accounts for one settlement.

    The engine builds a ledger from a snapshot, applies the month and freezes
    the result back into the next snapshot with ``accounts()``.
    """

    market: MarketProfile
    contribution_year: int
    _accounts: dict[str, AccountState] = field(default_factory=dict)

    @classmethod
    def from_accounts(cls, market: MarketProfile, accounts: Mapping[str, AccountState], contribution_year: int) -> AccountLedger:
        return cls(market=market, contribution_year=contribution_year, _accounts=dict(accounts))

    def accounts(self) -> dict[str, AccountState]:
        return dict(self._accounts)

    def _account(self, account_id: str, month: GameMonth) -> AccountState:
        self.market.account_rule(account_id, month)
        existing = self._accounts.get(account_id)
        if existing is None:
            existing = AccountState(account_id=account_id, currency=self.market.currency)
        return existing

    def balance(self, account_id: str) -> Money:
        state = self._accounts.get(account_id)
        if state is None:
            return Money.zero(self.market.currency)
        return state.balance

    def start_month(self, month: GameMonth) -> None:
        """Reset annual counters when the month belongs to a new calendar year."""
        if month.year == self.contribution_year:
            return
        zero = Money.zero(self.market.currency)
        self._accounts = {
            key: replace(state, contributed_this_year=zero, matched_this_year=zero) for key, state in self._accounts.items()
        }
        logger.debug("contribution_year_reset", extra={"from_year": self.contribution_year, "to_year": month.year})
        self.contribution_year = month.year

    def remaining_cap(self, account_id: str, month: GameMonth) -> Money | None:
        rule = self.market.account_rule(account_id, month)
        if rule.annual_cap is None:
            return None
        state = self._account(account_id, month)
        contributed = state.contributed_this_year if month.year == self.contribution_year else Money.zero(self.market.currency)
        return (rule.annual_cap - contributed).clamp_min_zero()

    def check_contribution(self, account_id: str, amount: Money, month: GameMonth) -> ContributionOutcome:
        """Dry-run a contribution against this year's cap without touching balances."""
        if not amount.is_positive:
            raise InputValidationError("contribution must be positive", field="amount", value=str(amount.amount))
        rule = self.market.account_rule(account_id, month)
        state = self._account(account_id, month)
        remaining = self.remaining_cap(account_id, month)
        if remaining is not None and rule.annual_cap is not None and amount > remaining:
            return CapExceeded(account_id=account_id, requested=amount, remaining_cap=remaining, annual_cap=rule.annual_cap)
        contributed = state.contributed_this_year if month.year == self.contribution_year else Money.zero(amount.currency)
        return ContributionAccepted(
            account_id=account_id,
            amount=amount,
            contributed_this_year=contributed + amount,
            remaining_cap=None if remaining is None else remaining - amount,
            deductible=rule.is_deductible,
        )

    def contribute(self, account_id: str, amount: Money, month: GameMonth) -> ContributionOutcome:
        """Credit a contribution, or reject all of it when it would pass the annual cap."""
        self.start_month(month)
        outcome = self.check_contribution(account_id, amount, month)
        if isinstance(outcome, CapExceeded):
            logger.info(
                "contribution_rejected",
                extra={
                    "account_id": account_id,
                    "requested": amount.to_json(),
                    "remaining_cap": outcome.remaining_cap.to_json(),
                },
            )
            return outcome

        state = self._account(account_id, month)
        self._accounts[account_id] = replace(
            state,
            lots=state.lots + (Lot(cost=amount, value=amount, acquired=month),),
            contributed_this_year=outcome.contributed_this_year,
        )
        return outcome

    def apply_state_match(self, account_id: str, contribution: Money, month: GameMonth) -> Money:
        """Credit the market's match for ``contribution``; independent of the player's own cap."""
        state = self._account(account_id, month)
        match = self.market.state_match(account_id, contribution, state.matched_this_year, month)
        if not match.is_positive:
            return Money.zero(self.market.currency)
        self._accounts[account_id] = replace(
            state,
            lots=state.lots + (Lot(cost=match, value=match, acquired=month),),
            matched_this_year=state.matched_this_year + match,
        )
        return match

    def deposit(self, account_id: str, amount: Money, month: GameMonth) -> None:
        """Credit money outside the contribution cap, e.g. opening balances."""
        if not amount.is_positive:
            return
        state = self._account(account_id, month)
        self._accounts[account_id] = replace(state, lots=state.lots + (Lot(cost=amount, value=amount, acquired=month),))

    def evaluate_disposal(self, account_id: str, amount: Money, month: GameMonth) -> DisposalOutcome:
        """Sell ``amount`` oldest-lot-first and compute capital gains tax lot by lot."""
        if not amount.is_positive:
            raise InputValidationError("disposal must be positive", field="amount", value=str(amount.amount))
        rule = self.market.account_rule(account_id, month)
        state = self._account(account_id, month)
        if amount > state.balance:
            raise InvariantViolation(
                "disposal exceeds account balance",
                rule="ledger.disposal",
                context={"account_id": account_id, "amount": amount.to_json(), "balance": state.balance.to_json()},
            )

        slices, kept = take_fifo(state.lots, amount)
        tax = Money.zero(amount.currency)
        exempt = 0
        if rule.tax_treatment == "taxable":
            for lot_slice in slices:
                lot_tax = self.market.capital_gains_tax(lot_slice, month)
                if lot_slice.gain.is_positive and lot_tax.is_zero:
                    exempt += 1
                tax = tax + lot_tax
        self._accounts[account_id] = replace(state, lots=kept)
        return DisposalOutcome(account_id=account_id, proceeds=amount, slices=tuple(slices), tax=tax, exempt_slices=exempt)

    def apply_market_move(self, return_bps: int, month: GameMonth) -> Money:
        """Grow invested accounts by ``return_bps`` basis points; returns the total change."""
        total = Money.zero(self.market.currency)
        rules = self.market.available_accounts(month)
        for account_id, state in list(self._accounts.items()):
            rule = rules.get(account_id)
            if rule is None or not rule.invested:
                continue
            grown, change = grow_lots(state.lots, return_bps)
            if change is None:
                continue
            self._accounts[account_id] = replace(state, lots=grown)
            total = total + change
        return total

    def invested_value(self, month: GameMonth) -> Money:
        rules = self.market.available_accounts(month)
        return Money.total(
            (state.balance for key, state in self._accounts.items() if rules.get(key) is not None and rules[key].invested),
            self.market.currency,
        )

    def check_invariants(self, month: GameMonth) -> None:
        rules = self.market.available_accounts(month)
        for account_id, state in self._accounts.items():
            context = {"account_id": account_id, "month": str(month)}
            rule = rules.get(account_id)
            if rule is None:
                raise InvariantViolation("account type no longer offered", rule="ledger.account_type", context=context)
            if state.contributed_this_year.is_negative or state.matched_this_year.is_negative:
                raise InvariantViolation("negative annual counter", rule="ledger.annual_counter", context=context)
            if rule.annual_cap is not None and state.contributed_this_year > rule.annual_cap:
                raise InvariantViolation(
                    "contributions exceed annual cap",
                    rule="ledger.annual_cap",
                    context={**context, "contributed": state.contributed_this_year.to_json()},
                )
            if any(lot.value.is_negative or lot.cost.is_negative for lot in state.lots):
                raise InvariantViolation("negative lot", rule="ledger.lot", context=context)
