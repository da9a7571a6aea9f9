# chiffrage/clients/routes.py

from flask import Blueprint, jsonify, request

from chiffrage import db, storage
from chiffrage.clients.utils import serialize_client, serialize_project
from chiffrage.errors import ValidationError
from chiffrage.models import Client, Project, new_id
from chiffrage.rates import normalize_rate_table

bp = Blueprint('clients', __name__)


def _json():
    return request.get_json(silent=True) or {}


@bp.route('/')
def list_clients():
    return jsonify(clients=[serialize_client(c) for c in storage.get_clients()])


@bp.route('/', methods=['POST'])
def create_client():
    data = _json()
    client = Client(
        id            = new_id(),
        name          = data.get('name', ''),
        company_name  = data.get('company_name', ''),
        email         = data.get('email', ''),
        address       = data.get('address', ''),
        default_rates = normalize_rate_table(data.get('default_rates')),
    )
    storage.save_client(client)
    return jsonify(client=serialize_client(client)), 201


@bp.route('/<client_id>')
def view_client(client_id):
    client = db.get_or_404(Client, client_id)
    return jsonify(client=serialize_client(client, with_projects=True))


@bp.route('/<client_id>/edit', methods=['POST'])
def edit_client(client_id):
    client = db.get_or_404(Client, client_id)
    data   = _json()
    client.name         = data.get('name', client.name)
    client.company_name = data.get('company_name', client.company_name)
    client.email        = data.get('email', client.email)
    client.address      = data.get('address', client.address)
    if 'default_rates' in data:
        client.default_rates = normalize_rate_table(data['default_rates'])
    storage.save_client(client)
    return jsonify(client=serialize_client(client))


@bp.route('/<client_id>/delete', methods=['POST'])
def delete_client(client_id):
    """Delete the client with its projects and every related quote."""
    removed = storage.delete_client(client_id)
    return jsonify(success=True, deleted_quotes=removed)


@bp.route('/<client_id>/projects', methods=['POST'])
def create_project(client_id):
    client = db.get_or_404(Client, client_id)
    data   = _json()
    project = Project(
        id             = new_id(),
        client_id      = client.id,
        name           = data.get('name', ''),
        description    = data.get('description', ''),
        specific_rates = normalize_rate_table(data.get('specific_rates')),
    )
    storage.save_project(project)
    return jsonify(project=serialize_project(project)), 201


@bp.route('/projects/<project_id>/edit', methods=['POST'])
def edit_project(project_id):
    project = db.get_or_404(Project, project_id)
    data    = _json()
    if data.get('client_id') and data['client_id'] != project.client_id:
        raise ValidationError('A project cannot move to another client')
    project.name        = data.get('name', project.name)
    project.description = data.get('description', project.description)
    if 'specific_rates' in data:
        project.specific_rates = normalize_rate_table(data['specific_rates'])
    storage.save_project(project)
    return jsonify(project=serialize_project(project))


@bp.route('/projects/<project_id>/delete', methods=['POST'])
def delete_project(project_id):
    """Delete the project and every quote referencing it."""
    removed = storage.delete_project(project_id)
    return jsonify(success=True, deleted_quotes=removed)
