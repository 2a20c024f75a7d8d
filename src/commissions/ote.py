"""Annual on-target-earnings cap with deceleration.

Past the cap an AE keeps earning base commission, but only at
``deceleration_rate`` of the full amount.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from commissions.models import Commission
from commissions.money import ZERO, to_currency, to_decimal

logger = logging.getLogger(__name__)

POLICY_COMMITTED = "committed"
POLICY_REALIZED = "realized"

POLICY_STATUSES = {
    POLICY_COMMITTED: Commission.COMMITTED_STATUSES,
    POLICY_REALIZED: Commission.REALIZED_STATUSES,
}


@dataclass(frozen=True)
class CapResult:
    adjusted_base: Decimal
    ote_applied: bool


def apply_cap(running_total, proposed_base, config) -> CapResult:
    """Apply the annual cap of *config* to *proposed_base*.

    With a 100,000 cap, 95,000 already earned and a 0.5 deceleration rate,
    a proposed 1,000,000 becomes ``5,000 + 995,000 * 0.5 = 502,500``.
    """
    running = to_decimal(running_total) or ZERO
    proposed = to_decimal(proposed_base) or ZERO
    cap = to_decimal(config.annual_cap_amount)

    if not cap or cap <= 0:
        return CapResult(to_currency(proposed), False)
    if running + proposed <= cap:
        return CapResult(to_currency(proposed), False)

    rate = to_decimal(config.deceleration_rate)
    if running >= cap:
        return CapResult(to_currency(proposed * rate), True)

    headroom = cap - running
    return CapResult(to_currency(headroom + (proposed - headroom) * rate), True)


def resolve_policy(policy: str | None = None) -> str:
    policy = policy or getattr(settings, "COMMISSION_OTE_POLICY", POLICY_COMMITTED)
    if policy not in POLICY_STATUSES:
        raise ValueError(f"Unknown OTE policy '{policy}'.")
    return policy


class OteCapTracker:
    """Read the AE's running total for the year and cap a proposed base."""

    def __init__(self, repository, policy: str | None = None) -> None:
        self.repository = repository
        self.policy = resolve_policy(policy)

    def running_total(self, ae_id, year: int) -> Decimal:
        return self.repository.sum_base_commission(ae_id, year, POLICY_STATUSES[self.policy])

    def apply(self, ae_id, year: int, proposed_base, config, already_counted=ZERO) -> CapResult:
        """Cap *proposed_base*; *already_counted* is removed from the running total first."""
        running = self.running_total(ae_id, year) - (to_decimal(already_counted) or ZERO)
        result = apply_cap(running, proposed_base, config)
        if result.ote_applied:
            logger.info(
                "OTE cap reached for ae=%s year=%s: running=%s proposed=%s adjusted=%s",
                ae_id,
                year,
                running,
                proposed_base,
                result.adjusted_base,
            )
        return result
