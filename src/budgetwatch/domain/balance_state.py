"""Balance-risk toast state machine.

States per (tenant, month): NEGATIVE when the projected month-end balance is
below zero, NON_NEGATIVE otherwise. Only transitions produce a toast:

    NON_NEGATIVE -> NEGATIVE    "risk of closing the month negative"
    NEGATIVE -> NON_NEGATIVE    "month recovered"

The first observation for a key only records the state. Repeated
observations of the same state neither toast nor write. The stored state is
the only record of what the user has already been told, so recomputing the
projection on every page load cannot repeat a toast.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import StrEnum
from typing import Any, Callable, Optional

from budgetwatch.database.base import BalanceStateStore
from budgetwatch.domain.dedupe import parse_month_key
from budgetwatch.domain.entities import BalanceState

logger = logging.getLogger(__name__)


class ToastKind(StrEnum):
    """Transition toasts."""

    RISK = "risk"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class Toast:
    """One-shot UI message produced by a state transition."""

    kind: ToastKind
    title_key: str
    description_key: str
    params: dict[str, Any] = field(default_factory=dict)
    variant: str = "default"


def state_key(tenant_id: str, month_key: str) -> str:
    """Return the cache key ``"{tenant_id}|{month_key}"``."""
    return f"{tenant_id}|{month_key}"


def balance_state_for(projected_balance: Decimal) -> BalanceState:
    """Map a projected balance onto its state."""
    if projected_balance < 0:
        return BalanceState.NEGATIVE
    return BalanceState.NON_NEGATIVE


def _risk_toast(projected_balance: Decimal, month_key: str) -> Toast:
    return Toast(
        kind=ToastKind.RISK,
        title_key="toasts.risk_month_negative.title",
        description_key="toasts.risk_month_negative.description",
        params={"amount": str(abs(projected_balance)), "month_key": month_key},
        variant="destructive",
    )


def _recovered_toast(month_key: str) -> Toast:
    return Toast(
        kind=ToastKind.RECOVERED,
        title_key="toasts.month_recovered.title",
        description_key="toasts.month_recovered.description",
        params={"month_key": month_key},
    )


class BalanceStateMachine:
    """Gates transition toasts on the stored per-month balance state."""

    def __init__(
        self,
        store: BalanceStateStore,
        notify: Optional[Callable[[Toast], None]] = None,
    ):
        """Initialize state machine.

        Args:
            store: Local key/value cache holding the last known state
            notify: Optional callback invoked with every fired toast
        """
        self.store = store
        self.notify = notify

    def observe(
        self, tenant_id: str, month_key: str, projected_balance: Decimal
    ) -> Optional[Toast]:
        """Feed a fresh projected balance for a tenant and month.

        Args:
            tenant_id: Owning tenant
            month_key: Month in ``YYYY-MM`` form
            projected_balance: Projected month-end balance

        Returns:
            The fired toast, or None when no transition happened

        Raises:
            ValidationError: If month_key is not ``YYYY-MM``
            StateStoreError: If the new state cannot be stored
        """
        month_key = parse_month_key(month_key)
        key = state_key(tenant_id, month_key)
        previous = self.store.get(key)
        current = balance_state_for(Decimal(projected_balance))

        if previous is None:
            logger.debug("First balance state for %s: %s", key, current)
            self.store.set(key, current)
            return None

        if previous is current:
            return None

        if current is BalanceState.NEGATIVE:
            toast = _risk_toast(Decimal(projected_balance), month_key)
        else:
            toast = _recovered_toast(month_key)

        logger.info("Balance state for %s moved %s -> %s", key, previous, current)
        if self.notify is not None:
            self.notify(toast)
        self.store.set(key, current)
        return toast

    def current_state(self, tenant_id: str, month_key: str) -> Optional[BalanceState]:
        """Return the stored state for a tenant and month."""
        return self.store.get(state_key(tenant_id, parse_month_key(month_key)))

    def reset(self, tenant_id: str, month_key: str) -> None:
        """Forget the stored state for a tenant and month."""
        self.store.clear(state_key(tenant_id, parse_month_key(month_key)))

    def reset_all(self) -> None:
        """Forget every stored state."""
        self.store.clear_all()
