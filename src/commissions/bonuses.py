"""Base commission and bonus arithmetic.

Every component is computed from the invoice amount on its own and rounded
to cents; bonuses never compound on each other and are never subject to the
OTE cap.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from commissions.money import ZERO, to_currency, to_decimal


@dataclass(frozen=True)
class BonusBreakdown:
    pilot_bonus: Decimal = ZERO
    multi_year_bonus: Decimal = ZERO
    upfront_bonus: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.pilot_bonus + self.multi_year_bonus + self.upfront_bonus


def compute_base(contract, invoice, config) -> Decimal:
    """``amount * base_rate``, with the share above the high-value threshold at its own rate."""
    amount = to_decimal(invoice.amount)
    base_rate = to_decimal(config.base_commission_rate)
    threshold = to_decimal(config.high_value_threshold)

    if threshold and to_decimal(contract.contract_value) > threshold and amount > threshold:
        high_rate = to_decimal(config.high_value_rate)
        return to_currency(threshold * base_rate + (amount - threshold) * high_rate)
    return to_currency(amount * base_rate)


def pilot_bonus(contract, invoice, config) -> Decimal:
    if not contract.is_pilot:
        return ZERO
    return to_currency(to_decimal(invoice.amount) * to_decimal(config.pilot_bonus_rate))


def multi_year_bonus(contract, invoice, config) -> Decimal:
    if contract.contract_length <= 1:
        return ZERO
    min_acv = to_decimal(config.multi_year_min_acv)
    if min_acv is not None and not to_decimal(contract.acv) > min_acv:
        return ZERO

    bonus = to_decimal(invoice.amount) * to_decimal(config.multi_year_bonus_rate)
    if config.multi_year_bonus_mode == "per_extra_year":
        bonus *= contract.contract_length - 1
    return to_currency(bonus)


def upfront_bonus(contract, invoice, config) -> Decimal:
    if contract.payment_terms not in ("upfront", "full-upfront"):
        return ZERO
    return to_currency(to_decimal(invoice.amount) * to_decimal(config.upfront_bonus_rate))


def compute_bonuses(contract, invoice, config) -> BonusBreakdown:
    return BonusBreakdown(
        pilot_bonus=pilot_bonus(contract, invoice, config),
        multi_year_bonus=multi_year_bonus(contract, invoice, config),
        upfront_bonus=upfront_bonus(contract, invoice, config),
    )
