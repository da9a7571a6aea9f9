# chiffrage/rates.py
"""Daily rate resolution.

A client carries a default role -> price table; a project may override any
subset of it.  The effective table for a quote is the client's table with
every project entry laid on top.  Roles are free text and matched exactly
(case-sensitive).
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Mapping, Optional

from chiffrage.errors import ValidationError
from chiffrage.sanitize import strip_control

logger = logging.getLogger(__name__)

RateTable = Dict[str, float]


def resolve_rates(client=None, project=None) -> RateTable:
    """Return the effective rate table for ``client`` and ``project``.

    Either may be ``None``; a missing side simply contributes nothing.  The
    returned dict is a fresh copy, callers may mutate it freely.
    """
    rates: RateTable = dict(getattr(client, 'default_rates', None) or {})
    overrides = getattr(project, 'specific_rates', None) or {}
    for role, price in overrides.items():
        rates[role] = price
    return rates


def normalize_rate_table(raw: Optional[Mapping]) -> RateTable:
    """Validate a rate table received from the outside world.

    Role names are trimmed and empty names dropped.  Prices must be
    non-negative finite numbers.
    """
    table: RateTable = {}
    for role, price in (raw or {}).items():
        name = strip_control(role).strip()
        if not name:
            continue
        try:
            value = float(price)
        except (TypeError, ValueError):
            raise ValidationError(f"Rate for role '{name}' is not a number")
        if not math.isfinite(value):
            raise ValidationError(f"Rate for role '{name}' must be a finite number")
        if value < 0:
            raise ValidationError(f"Rate for role '{name}' must not be negative")
        table[name] = value
    return table


def _document_roles(quote) -> Iterable[str]:
    for section in quote.sections:
        for item in section.items:
            yield from (item.details or {})


def unpriced_roles(quote, rates: Mapping[str, float]) -> List[str]:
    """Roles used by the quote that have no entry in ``rates``, first seen first."""
    missing: List[str] = []
    for role in _document_roles(quote):
        if role not in rates and role not in missing:
            missing.append(role)
    return missing


def rate_warnings(quote, rates: Mapping[str, float]) -> List[str]:
    """User facing messages for every unpriced role of ``quote``."""
    folded = {role.casefold(): role for role in rates}
    warnings = []
    for role in unpriced_roles(quote, rates):
        message = f"Role '{role}' has no daily rate and is priced at 0"
        near = folded.get(role.casefold())
        if near is not None:
            message += f" (did you mean '{near}'?)"
        logger.warning("quote %s: %s", getattr(quote, 'id', None), message)
        warnings.append(message)
    return warnings
