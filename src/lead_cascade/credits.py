"""In-process credit gate with an atomic check-then-debit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock

CREDIT_COSTS = {
    "web_search": 1,
    "lead_search": 2,
    "lead_generation": 2,
    "curator_discovery": 2,
    "smart_scrape": 3,
    "deep_search": 5,
    "apollo_search": 5,
    "deep_contact_enrichment": 5,
}


def credit_cost(reason: str) -> int:
    """Cost of a named action; unknown actions are free."""
    return CREDIT_COSTS.get(reason, 0)


@dataclass(frozen=True)
class CreditTransaction:
    principal: str
    amount: int
    reason: str
    created_at: str


class InMemoryCreditGate:
    """Per-principal balances guarded by one lock.

    Suitable for a single server process. Every concurrent run shares the
    same instance.
    """

    def __init__(
        self,
        *,
        default_balance: int,
        balances: dict[str, int] | None = None,
        logger: logging.Logger,
    ) -> None:
        self._default_balance = default_balance
        self._balances: dict[str, int] = dict(balances or {})
        self._transactions: list[CreditTransaction] = []
        self._lock = Lock()
        self._logger = logger

    def check_balance(self, principal: str) -> int:
        with self._lock:
            return self._balances.get(principal, self._default_balance)

    def debit(self, principal: str, amount: int, reason: str) -> bool:
        if amount <= 0:
            return True
        with self._lock:
            balance = self._balances.get(principal, self._default_balance)
            if balance < amount:
                self._logger.warning(
                    "Insufficient credits for %s: has %d, needs %d (%s)", principal, balance, amount, reason
                )
                return False
            self._balances[principal] = balance - amount
            self._transactions.append(
                CreditTransaction(
                    principal=principal,
                    amount=-amount,
                    reason=reason,
                    created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                )
            )
        return True

    def grant(self, principal: str, amount: int, reason: str = "grant") -> int:
        with self._lock:
            balance = self._balances.get(principal, self._default_balance) + amount
            self._balances[principal] = balance
            self._transactions.append(
                CreditTransaction(
                    principal=principal,
                    amount=amount,
                    reason=reason,
                    created_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                )
            )
        return balance

    def transactions(self, principal: str | None = None) -> list[CreditTransaction]:
        with self._lock:
            return [t for t in self._transactions if principal is None or t.principal == principal]
