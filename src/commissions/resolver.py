"""Pick the commission config that applies to an AE on a given date."""
from __future__ import annotations

import logging
import warnings
from datetime import date

from django.conf import settings

from commissions.exceptions import ConfigNotFoundError, IntegrityWarning
from commissions.models import CommissionConfig
from commissions.money import to_decimal

logger = logging.getLogger(__name__)


def build_default_config(overrides: dict | None = None) -> CommissionConfig | None:
    """Return the unsaved system-default plan, or ``None`` when disabled."""
    data = overrides if overrides is not None else settings.COMMISSION_DEFAULT_CONFIG
    if data is None:
        return None

    fields = {"name": "System default", "base_commission_rate": "0.10", **data}
    for field in CommissionConfig.RATE_FIELDS:
        if field in fields and field != "multi_year_bonus_mode":
            fields[field] = to_decimal(fields[field])

    config = CommissionConfig(**fields)
    config.is_system_default = True
    return config


class ConfigResolver:
    """Resolve ``(ae_id, on_date)`` to exactly one :class:`CommissionConfig`.

    Assignments are half-open intervals ``[effective_date, end_date)``.
    Overlaps should never exist; when they do the assignment with the latest
    ``effective_date`` wins and an :class:`IntegrityWarning` is emitted.
    """

    def __init__(self, repository, default_config: dict | None = None) -> None:
        self.repository = repository
        self.default_config = default_config

    def resolve(self, ae_id, on_date: date) -> CommissionConfig:
        matches = [a for a in self.repository.get_assignments(ae_id, on_date) if a.covers(on_date)]

        if len(matches) == 1:
            return matches[0].config

        if matches:
            matches.sort(key=lambda a: a.effective_date, reverse=True)
            chosen = matches[0]
            message = (
                f"AE {ae_id} has {len(matches)} overlapping commission assignments "
                f"on {on_date}; using the one effective {chosen.effective_date}."
            )
            logger.error(message)
            warnings.warn(message, IntegrityWarning, stacklevel=2)
            return chosen.config

        default = build_default_config(self.default_config)
        if default is None:
            raise ConfigNotFoundError(ae_id, on_date)
        logger.warning(
            "No commission assignment for AE %s on %s; falling back to '%s' (base rate %s)",
            ae_id,
            on_date,
            default.name,
            default.base_commission_rate,
        )
        return default
