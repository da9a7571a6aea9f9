# chiffrage/dashboard.py
"""Headline figures over all quotes."""

from flask import Blueprint, jsonify

from chiffrage import storage
from chiffrage.models import QuoteStatus

bp = Blueprint('dashboard', __name__)

PIPELINE_STATUSES = {
    QuoteStatus.SENT.value,
    QuoteStatus.ESTIMATE.value,
    QuoteStatus.PENDING.value,
    QuoteStatus.LATE.value,
}


def compute_stats(quotes) -> dict:
    """
    revenue: accepted quotes (HT); pipeline: quotes still in play;
    acceptance_rate: accepted / all, as a rounded percentage.
    """
    quotes = list(quotes)
    accepted = [q for q in quotes if q.status == QuoteStatus.ACCEPTED.value]
    by_status = {s.value: 0 for s in QuoteStatus}
    for q in quotes:
        by_status[q.status] = by_status.get(q.status, 0) + 1
    return {
        'total_revenue'   : sum(q.total_amount or 0 for q in accepted),
        'pending_amount'  : sum(q.total_amount or 0 for q in quotes
                                if q.status in PIPELINE_STATUSES),
        'acceptance_rate' : round(len(accepted) / len(quotes) * 100) if quotes else 0,
        'accepted_quotes' : len(accepted),
        'total_quotes'    : len(quotes),
        'active_clients'  : len({q.client_id for q in quotes if q.client_id}),
        'by_status'       : by_status,
    }


@bp.route('/stats')
def stats():
    return jsonify(compute_stats(storage.get_quotes()))
