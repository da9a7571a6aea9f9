# chiffrage/quotes/utils.py

"""Serialisation and listing helpers for the quotes blueprint."""

from chiffrage.models import QuoteStatus
from chiffrage.quotes import totals


def format_money(value) -> str:
    """French style amount: '1 400,00 €'."""
    text = f"{float(value or 0):,.2f}"
    return text.replace(",", " ").replace(".", ",") + " €"


def format_days(value) -> str:
    return f"{float(value or 0):.2f}".rstrip("0").rstrip(".") or "0"


def _iso(value):
    return value.isoformat() if value else None


def serialize_quote(quote, rates, warnings=None, detailed=True) -> dict:
    """
    JSON view of a quote with the figures recomputed from ``rates``.
    ``total_amount`` is the cached value; ``totals`` is always fresh.
    """
    data = {
        'id'           : quote.id,
        'reference'    : quote.reference,
        'version'      : quote.version,
        'client_id'    : quote.client_id,
        'project_id'   : quote.project_id,
        'status'       : quote.status,
        'has_vat'      : bool(quote.has_vat),
        'total_amount' : quote.total_amount,
        'notes'        : quote.notes or '',
        'created_at'   : _iso(quote.created_at),
        'updated_at'   : _iso(quote.updated_at),
        'valid_until'  : _iso(quote.valid_until),
    }
    if not detailed:
        return data
    data['rates'] = dict(rates)
    data['totals'] = totals.totals_summary(quote, rates)
    data['warnings'] = list(warnings or [])
    data['sections'] = [{
        'id'        : s.id,
        'title'     : s.title,
        'days'      : totals.section_days(s),
        'total'     : totals.section_total(s, rates),
        'role_days' : {r: totals.section_role_days(s, r) for r in rates},
        'items'     : [{
            'id'          : i.id,
            'description' : i.description,
            'details'     : dict(i.details or {}),
            'days'        : totals.item_days(i),
            'total'       : totals.item_total(i, rates),
        } for i in s.items],
    } for s in quote.sections]
    return data


def filter_quotes(quotes, text='', status=None, client_id=None, client_names=None) -> list:
    """
    Quote list filtering: ``text`` matches the reference or the client's
    company name, case-insensitively. Newest first.
    """
    needle = (text or '').lower()
    names = client_names or {}
    out = []
    for q in quotes:
        if needle and needle not in (q.reference or '').lower() \
                and needle not in (names.get(q.client_id) or '').lower():
            continue
        if status and status != 'ALL' and q.status != status:
            continue
        if client_id and client_id != 'ALL' and q.client_id != client_id:
            continue
        out.append(q)
    return sorted(out, key=lambda q: q.created_at, reverse=True)


def parse_status(value):
    try:
        return QuoteStatus(value).value
    except ValueError:
        return None
