# chiffrage/quotes/totals.py
"""Quote arithmetic.

Everything here is a pure function of the document and an effective rate
table.  The helpers only rely on ``item.details``, ``section.items`` and
``quote.sections`` so they work on ORM rows as well as plain objects.
Nothing is rounded; formatting happens at presentation time.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from chiffrage.rates import resolve_rates

VAT_RATE = 0.2


def item_days(item) -> float:
    return sum((item.details or {}).values())


def item_total(item, rates: Mapping[str, float]) -> float:
    """Sum of ``days * rate`` over the item's roles; unknown roles cost 0."""
    return sum(
        days * rates.get(role, 0)
        for role, days in (item.details or {}).items()
    )


def section_days(section) -> float:
    return sum(item_days(item) for item in section.items)


def section_total(section, rates: Mapping[str, float]) -> float:
    return sum(item_total(item, rates) for item in section.items)


def section_role_days(section, role: str) -> float:
    return sum((item.details or {}).get(role, 0) for item in section.items)


def quote_total(quote, rates: Mapping[str, float]) -> float:
    """Pre-tax (HT) total, the canonical value cached in ``total_amount``."""
    return sum(section_total(section, rates) for section in quote.sections)


def quote_days(quote) -> float:
    return sum(section_days(section) for section in quote.sections)


def quote_role_days(quote) -> Dict[str, float]:
    """Days per role across the whole quote, in first-seen order."""
    totals: Dict[str, float] = {}
    for section in quote.sections:
        for item in section.items:
            for role, days in (item.details or {}).items():
                totals[role] = totals.get(role, 0) + days
    return totals


def vat_amount(total_ht: float) -> float:
    return total_ht * VAT_RATE


def total_ttc(total_ht: float) -> float:
    return total_ht * (1 + VAT_RATE)


def totals_summary(quote, rates: Mapping[str, float]) -> dict:
    """HT/VAT/TTC figures for ``quote``; VAT keys are ``None`` without VAT."""
    ht = quote_total(quote, rates)
    return {
        'total_days': quote_days(quote),
        'total_ht': ht,
        'vat': vat_amount(ht) if quote.has_vat else None,
        'total_ttc': total_ttc(ht) if quote.has_vat else None,
    }


def refresh_total(quote, rates: Optional[Mapping[str, float]] = None) -> float:
    """Recompute and cache ``quote.total_amount``.

    When ``rates`` is omitted the effective table is resolved from the
    quote's current client and project.
    """
    if rates is None:
        rates = resolve_rates(quote.client, quote.project)
    quote.total_amount = quote_total(quote, rates)
    return quote.total_amount
