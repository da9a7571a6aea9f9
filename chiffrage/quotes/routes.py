# chiffrage/quotes/routes.py

import io
import logging
from datetime import datetime

from flask import Blueprint, current_app, jsonify, render_template, request, send_file

from chiffrage import db
from chiffrage.errors import ValidationError
from chiffrage.exports.print_view import build_print_view
from chiffrage.exports.workbook import build_workbook, write_xlsx
from chiffrage.integrations.gemini import GeminiClient, sections_from_suggestion
from chiffrage.models import Client, Project, Quote
from chiffrage.quotes import document
from chiffrage.quotes.utils import (
    filter_quotes,
    format_days,
    format_money,
    parse_status,
    serialize_quote,
)
from chiffrage.quotes.versioning import duplicate_quote, version_family
from chiffrage.rates import rate_warnings, resolve_rates
from chiffrage import storage

logger = logging.getLogger(__name__)

bp = Blueprint('quotes', __name__)


@bp.app_template_filter('money')
def money_filter(value):
    return format_money(value)


@bp.app_template_filter('days')
def days_filter(value):
    return format_days(value)


def _rates(quote):
    client, project = storage.quote_selection(quote)
    return resolve_rates(client, project)


def _respond(quote, status=200):
    rates = _rates(quote)
    return jsonify(quote=serialize_quote(quote, rates, rate_warnings(quote, rates))), status


def _save(quote, status=200):
    """Every structural edit ends here: recompute, persist, answer."""
    storage.save_quote(quote)
    return _respond(quote, status)


def _json():
    return request.get_json(silent=True) or {}


def _index(data):
    try:
        return int(data.get('index', 0))
    except (TypeError, ValueError):
        raise ValidationError('index must be an integer')


@bp.route('/')
def list_quotes():
    names = {c.id: c.company_name for c in storage.get_clients()}
    quotes = filter_quotes(
        storage.get_quotes(),
        text=request.args.get('q', ''),
        status=request.args.get('status'),
        client_id=request.args.get('client_id'),
        client_names=names,
    )
    return jsonify(quotes=[serialize_quote(q, {}, detailed=False) for q in quotes])


@bp.route('/', methods=['POST'])
def create_quote():
    """Create a draft with one empty section holding one empty item.

    Client and project are required: a quote without them cannot be saved.
    """
    data = _json()
    client = db.session.get(Client, data.get('client_id') or '')
    project = db.session.get(Project, data.get('project_id') or '')
    quote = document.new_quote(
        client=client,
        project=project,
        reference=data.get('reference'),
        validity_days=current_app.config['QUOTE_VALIDITY_DAYS'],
    )
    return _save(quote, 201)


@bp.route('/<quote_id>')
def view_quote(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    return _respond(quote)


@bp.route('/<quote_id>/edit', methods=['POST'])
def edit_quote(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    data = _json()
    if 'client_id' in data and data['client_id'] != quote.client_id:
        # a new client invalidates the project selection
        quote.client_id = data['client_id'] or None
        quote.project_id = None
        quote.project = None
    if 'project_id' in data:
        quote.project_id = data['project_id'] or None
    if 'status' in data:
        status = parse_status(data['status'])
        if status is None:
            raise ValidationError(f"Unknown status '{data['status']}'")
        quote.status = status
    if 'has_vat' in data:
        if not isinstance(data['has_vat'], bool):
            raise ValidationError('has_vat must be true or false')
        quote.has_vat = data['has_vat']
    if 'notes' in data:
        quote.notes = data['notes'] or ''
    if 'reference' in data and data['reference']:
        quote.reference = data['reference'].strip()
    if 'valid_until' in data:
        try:
            quote.valid_until = datetime.fromisoformat(data['valid_until']) \
                if data['valid_until'] else None
        except (TypeError, ValueError):
            raise ValidationError('valid_until must be an ISO date')
    return _save(quote)


@bp.route('/<quote_id>/delete', methods=['POST'])
def delete_quote(quote_id):
    removed = storage.delete_quote(quote_id)
    return jsonify(success=True, deleted=removed)


@bp.route('/<quote_id>/sections', methods=['POST'])
def add_section(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    document.add_section(quote, _json().get('title') or document.DEFAULT_SECTION_TITLE)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/edit', methods=['POST'])
def edit_section(quote_id, section_id):
    quote = db.get_or_404(Quote, quote_id)
    section = document.find_section(quote, section_id)
    document.set_section_title(section, _json().get('title', section.title))
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/remove', methods=['POST'])
def remove_section(quote_id, section_id):
    quote = db.get_or_404(Quote, quote_id)
    document.remove_section(quote, section_id)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/duplicate', methods=['POST'])
def duplicate_section(quote_id, section_id):
    quote = db.get_or_404(Quote, quote_id)
    document.duplicate_section(quote, section_id)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/move', methods=['POST'])
def move_section(quote_id, section_id):
    quote = db.get_or_404(Quote, quote_id)
    document.move_section(quote, section_id, _index(_json()))
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/items', methods=['POST'])
def add_item(quote_id, section_id):
    quote = db.get_or_404(Quote, quote_id)
    data = _json()
    section = document.find_section(quote, section_id)
    document.add_item(section, data.get('description', ''), data.get('details'))
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/items/<item_id>/update', methods=['POST'])
def update_item(quote_id, section_id, item_id):
    """
    Body: { description?: str, details?: {role: days} }.
    Roles listed in ``details`` are set (0 removes them); others are untouched.
    """
    quote = db.get_or_404(Quote, quote_id)
    data = _json()
    item = document.find_item(document.find_section(quote, section_id), item_id)
    if 'description' in data:
        document.set_item_description(item, data['description'])
    for role, days in (data.get('details') or {}).items():
        document.set_item_days(item, role, days)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/items/<item_id>/remove', methods=['POST'])
def remove_item(quote_id, section_id, item_id):
    quote = db.get_or_404(Quote, quote_id)
    document.remove_item(document.find_section(quote, section_id), item_id)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/items/<item_id>/duplicate', methods=['POST'])
def duplicate_item(quote_id, section_id, item_id):
    quote = db.get_or_404(Quote, quote_id)
    document.duplicate_item(document.find_section(quote, section_id), item_id)
    return _save(quote)


@bp.route('/<quote_id>/sections/<section_id>/items/<item_id>/move', methods=['POST'])
def move_item(quote_id, section_id, item_id):
    quote = db.get_or_404(Quote, quote_id)
    section = document.find_section(quote, section_id)
    document.move_item(section, item_id, _index(_json()))
    return _save(quote)


@bp.route('/<quote_id>/duplicate', methods=['POST'])
def duplicate(quote_id):
    """Body: { mode: 'version' | 'copy' }."""
    quote = db.get_or_404(Quote, quote_id)
    mode = _json().get('mode', 'version')
    if mode not in ('version', 'copy'):
        raise ValidationError(f"Unknown duplication mode '{mode}'")
    copy = duplicate_quote(quote, storage.get_quotes(reference=quote.reference), mode)
    return _save(copy, 201)


@bp.route('/<quote_id>/versions')
def list_versions(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    family = version_family(quote, storage.get_quotes(reference=quote.reference))
    return jsonify(versions=[{
        'id'         : q.id,
        'version'    : q.version,
        'status'     : q.status,
        'updated_at' : q.updated_at.isoformat() if q.updated_at else None,
    } for q in family])


@bp.route('/<quote_id>/print')
def print_quote(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    client, project = storage.quote_selection(quote)
    view = build_print_view(quote, resolve_rates(client, project), client, project)
    return render_template('quotes/print.html', view=view)


@bp.route('/<quote_id>/export.xlsx')
def export_xlsx(quote_id):
    quote = db.get_or_404(Quote, quote_id)
    client, project = storage.quote_selection(quote)
    model = build_workbook(quote, resolve_rates(client, project), client, project)
    payload = write_xlsx(model)
    logger.info("quote %s exported (%d bytes)", quote.id, len(payload))
    return send_file(
        io.BytesIO(payload),
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=f"Chiffrage-{quote.reference}-v{quote.version}.xlsx",
    )


@bp.route('/<quote_id>/suggest', methods=['POST'])
def suggest_sections(quote_id):
    """Append sections drafted by the suggestion service from a free-text brief."""
    quote = db.get_or_404(Quote, quote_id)
    brief = (_json().get('description') or '').strip()
    if not brief:
        raise ValidationError('A project description is required')
    client = GeminiClient.from_config(current_app.config)
    payload = client.suggest_sections(brief, _rates(quote))
    for section in sections_from_suggestion(payload):
        quote.sections.append(section)
    return _save(quote)
