"""Spreadsheet export with live formulas.

:func:`build_workbook` lays the quote out as rows of cells; item rows carry
formulas for their day and price totals, with the effective daily rates
baked in as literal coefficients, and the total block sums the price
column.  Editing a day cell in the exported file and recalculating gives
the same figures as :mod:`chiffrage.quotes.totals`.  :func:`write_xlsx`
serialises the model with openpyxl.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from chiffrage.errors import ExportError
from chiffrage.quotes.totals import VAT_RATE, quote_role_days

logger = logging.getLogger(__name__)

SHEET_NAME = "Chiffrage"
CURRENCY_FORMAT = '#,##0.00 "€"'
DAYS_FORMAT = '0.00'
ITEM_INDENT = "    "


@dataclass
class Cell:
    """A literal ``value`` or a ``formula`` (without the leading '=')."""

    value: Any = None
    formula: Optional[str] = None
    style: str = "normal"
    number_format: Optional[str] = None

    @property
    def is_formula(self) -> bool:
        return self.formula is not None


@dataclass
class WorkbookModel:
    """Row/formula model of the exported sheet; ``rows[0]`` is Excel row 1."""

    sheet_name: str
    roles: List[str]
    rows: List[List[Cell]] = field(default_factory=list)
    column_widths: List[int] = field(default_factory=list)
    item_rows: List[int] = field(default_factory=list)
    total_ht_ref: str = ""
    vat_ref: Optional[str] = None
    ttc_ref: Optional[str] = None

    def append(self, *cells: Cell) -> int:
        """Add a row and return its 1-based Excel row number."""
        self.rows.append(list(cells))
        return len(self.rows)

    def cell(self, ref: str) -> Optional[Cell]:
        letters = "".join(ch for ch in ref if ch.isalpha())
        row = int(ref[len(letters):])
        col = 0
        for ch in letters.upper():
            col = col * 26 + (ord(ch) - ord("A") + 1)
        if row > len(self.rows) or col > len(self.rows[row - 1]):
            return None
        return self.rows[row - 1][col - 1]


def number_literal(value) -> str:
    """Render a rate as a formula coefficient, integers without a decimal point."""
    number = float(value or 0)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def export_roles(quote, rates: Mapping[str, float]) -> List[str]:
    """Rate table roles in table order, then unpriced roles used by the quote."""
    roles = list(rates)
    for role in quote_role_days(quote):
        if role not in roles:
            roles.append(role)
    return roles


def _blank() -> Cell:
    return Cell("")


def build_workbook(quote, rates: Mapping[str, float], client=None, project=None) -> WorkbookModel:
    roles = export_roles(quote, rates)
    model = WorkbookModel(sheet_name=SHEET_NAME, roles=roles)

    # Header block
    model.append(Cell("CHIFFRAGE", style="title"))
    model.append(_blank())
    model.append(Cell("CLIENT:", style="label"),
                 Cell(getattr(client, "company_name", "") or "", style="value"))
    model.append(Cell("PROJET:", style="label"),
                 Cell(getattr(project, "name", "") or "", style="value"))
    model.append(_blank())
    model.append(_blank())

    # Rate grid
    model.append(Cell("GRILLE TARIFAIRE (TJM)", style="muted"))
    model.append(Cell("RÔLE", style="header"), Cell("PRIX / JOUR", style="header"))
    for role in roles:
        model.append(Cell(role),
                     Cell(float(rates.get(role, 0)), style="currency",
                          number_format=CURRENCY_FORMAT))
    model.append(_blank())
    model.append(_blank())

    # Detailed matrix: Description | roles... | total days | total price
    first_role = get_column_letter(2)
    last_role = get_column_letter(len(roles) + 1)
    days_col = len(roles) + 2
    price_col = len(roles) + 3
    price_letter = get_column_letter(price_col)
    headers = ["DESCRIPTION", *roles, "TOTAL JOURS", "TOTAL PRIX"]

    for section in quote.sections:
        model.append(Cell(f" {(section.title or '').upper()}", style="section"))
        model.append(*[Cell(h, style="header") for h in headers])
        for item in section.items:
            row = len(model.rows) + 1
            details = item.details or {}
            cells = [Cell(ITEM_INDENT + (item.description or ""))]
            cells.extend(
                Cell(float(details.get(role, 0)), style="number") for role in roles
            )
            if roles:
                days_formula = f"SUM({first_role}{row}:{last_role}{row})"
                price_formula = "+".join(
                    f"({get_column_letter(idx + 2)}{row}*{number_literal(rates.get(role, 0))})"
                    for idx, role in enumerate(roles)
                )
            else:
                days_formula = price_formula = "0"
            cells.append(Cell(formula=days_formula, style="number", number_format=DAYS_FORMAT))
            cells.append(Cell(formula=price_formula, style="currency",
                              number_format=CURRENCY_FORMAT))
            model.item_rows.append(model.append(*cells))
        model.append(_blank())

    model.append(_blank())

    # Totals, aligned under the day/price columns
    spacer = [_blank() for _ in range(days_col - 1)]
    if model.item_rows:
        ht_formula = f"SUM({price_letter}{model.item_rows[0]}:{price_letter}{model.item_rows[-1]})"
    else:
        ht_formula = "0"
    ht_row = model.append(*spacer, Cell("TOTAL HT", style="total_label"),
                          Cell(formula=ht_formula, style="total_value",
                               number_format=CURRENCY_FORMAT))
    model.total_ht_ref = f"{price_letter}{ht_row}"

    if quote.has_vat:
        vat_row = model.append(
            *spacer, Cell(f"TVA ({round(VAT_RATE * 100)}%)", style="total_label"),
            Cell(formula=f"{model.total_ht_ref}*{number_literal(VAT_RATE)}",
                 style="total_value", number_format=CURRENCY_FORMAT))
        model.vat_ref = f"{price_letter}{vat_row}"
        ttc_row = model.append(
            *spacer, Cell("TOTAL TTC", style="total_label"),
            Cell(formula=f"{model.total_ht_ref}*{number_literal(1 + VAT_RATE)}",
                 style="total_value", number_format=CURRENCY_FORMAT))
        model.ttc_ref = f"{price_letter}{ttc_row}"

    model.column_widths = [60, *[12 for _ in roles], 15, 20]
    return model


_FILLS = {
    "header": PatternFill("solid", fgColor="1E293B"),
    "section": PatternFill("solid", fgColor="EEF2FF"),
    "total_value": PatternFill("solid", fgColor="F8FAFC"),
}

_FONTS = {
    "title": Font(size=20, bold=True, color="0F172A"),
    "label": Font(size=10, bold=True, color="64748B"),
    "value": Font(size=11, bold=True, color="0F172A"),
    "muted": Font(bold=True, color="94A3B8"),
    "header": Font(size=11, bold=True, color="FFFFFF"),
    "section": Font(size=12, bold=True, color="312E81"),
    "total_label": Font(size=11, bold=True),
    "total_value": Font(size=11, bold=True),
}

_ALIGNMENTS: Dict[str, Alignment] = {
    "header": Alignment(horizontal="center", vertical="center"),
    "section": Alignment(horizontal="left", vertical="center"),
    "number": Alignment(horizontal="center", vertical="center"),
    "currency": Alignment(horizontal="right", vertical="center"),
    "total_label": Alignment(horizontal="right"),
    "total_value": Alignment(horizontal="right"),
}


def write_xlsx(model: WorkbookModel) -> bytes:
    """Serialise ``model`` to XLSX bytes; only formula cells are written as formulas."""

    try:
        wb = Workbook()
        ws = wb.active
        ws.title = model.sheet_name[:31] or SHEET_NAME
        for r, row in enumerate(model.rows, start=1):
            for c, entry in enumerate(row, start=1):
                value = f"={entry.formula}" if entry.is_formula else entry.value
                if value in (None, "") and entry.style == "normal":
                    continue
                cell = ws.cell(row=r, column=c, value=value)
                if isinstance(value, str) and not entry.is_formula:
                    # free text starting with "=" stays text
                    cell.data_type = "s"
                if entry.style in _FONTS:
                    cell.font = _FONTS[entry.style]
                if entry.style in _FILLS:
                    cell.fill = _FILLS[entry.style]
                if entry.style in _ALIGNMENTS:
                    cell.alignment = _ALIGNMENTS[entry.style]
                if entry.number_format:
                    cell.number_format = entry.number_format
        for idx, width in enumerate(model.column_widths, start=1):
            ws.column_dimensions[get_column_letter(idx)].width = width

        buffer = io.BytesIO()
        wb.save(buffer)
    except (IllegalCharacterError, ValueError, TypeError, OSError) as e:
        logger.error("Spreadsheet export failed: %s", e)
        raise ExportError(f"Spreadsheet export failed: {e}") from e
    return buffer.getvalue()
