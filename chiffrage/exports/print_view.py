"""Flattened, print-ready projection of a quote.

Every figure is a literal number computed by :mod:`chiffrage.quotes.totals`;
the template only formats them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from chiffrage.exports.workbook import export_roles
from chiffrage.quotes import totals


@dataclass
class PrintItem:
    description: str
    details: List[Tuple[str, float]]
    days: float
    total: float


@dataclass
class PrintSection:
    title: str
    items: List[PrintItem] = field(default_factory=list)
    role_days: Dict[str, float] = field(default_factory=dict)
    days: float = 0.0
    total: float = 0.0


@dataclass
class PrintView:
    """Container for everything the printable quote shows."""

    reference: str
    version: int
    client_name: str
    project_name: str
    roles: List[str]
    rates: Dict[str, float]
    sections: List[PrintSection]
    role_days: Dict[str, float]
    total_days: float
    total_ht: float
    has_vat: bool
    vat: Optional[float]
    total_ttc: Optional[float]
    notes: str = ''

    @property
    def grand_total(self) -> float:
        return self.total_ttc if self.has_vat else self.total_ht


def build_print_view(quote, rates: Mapping[str, float], client=None, project=None) -> PrintView:
    roles = export_roles(quote, rates)
    sections = []
    for section in quote.sections:
        items = [
            PrintItem(
                description=item.description or '',
                details=[(role, days) for role, days in (item.details or {}).items()],
                days=totals.item_days(item),
                total=totals.item_total(item, rates),
            )
            for item in section.items
        ]
        role_days = {role: totals.section_role_days(section, role) for role in roles}
        sections.append(PrintSection(
            title=section.title or '',
            items=items,
            role_days={role: days for role, days in role_days.items() if days},
            days=totals.section_days(section),
            total=totals.section_total(section, rates),
        ))

    summary = totals.totals_summary(quote, rates)
    return PrintView(
        reference=quote.reference,
        version=quote.version or 1,
        client_name=getattr(client, 'company_name', '') or getattr(client, 'name', '') or '',
        project_name=getattr(project, 'name', '') or '',
        roles=roles,
        rates={role: rates.get(role, 0) for role in roles},
        sections=sections,
        role_days=totals.quote_role_days(quote),
        total_days=summary['total_days'],
        total_ht=summary['total_ht'],
        has_vat=bool(quote.has_vat),
        vat=summary['vat'],
        total_ttc=summary['total_ttc'],
        notes=quote.notes or '',
    )
