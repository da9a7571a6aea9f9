# chiffrage/storage.py
"""Database access for clients, projects and quotes.

Every write runs in a single transaction: either all rows of a save or a
cascading delete land, or the session is rolled back and a
``PersistenceError`` is raised.  Deletes are idempotent.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from chiffrage import db
from chiffrage.errors import PersistenceError, ValidationError
from chiffrage.models import Client, Project, Quote, QuoteStatus, utcnow
from chiffrage.quotes.totals import refresh_total
from chiffrage.rates import resolve_rates
from chiffrage.sanitize import DESCRIPTION_MAX, TITLE_MAX, sanitize_text

logger = logging.getLogger(__name__)


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("%s failed: %s", action, e)
        raise PersistenceError(f"{action} failed") from e


def get_clients() -> List[Client]:
    return Client.query.order_by(Client.company_name).all()


def get_projects(client_id: Optional[str] = None) -> List[Project]:
    query = Project.query
    if client_id:
        query = query.filter_by(client_id=client_id)
    return query.order_by(Project.name).all()


def get_quotes(reference: Optional[str] = None) -> List[Quote]:
    query = Quote.query
    if reference is not None:
        query = query.filter_by(reference=reference)
    return query.order_by(Quote.created_at.desc()).all()


def get_quote(quote_id: str) -> Optional[Quote]:
    return db.session.get(Quote, quote_id)


def _check_client(client: Client) -> Client:
    client.name = sanitize_text(client.name)
    client.company_name = sanitize_text(client.company_name)
    client.email = sanitize_text(client.email)
    client.address = sanitize_text(client.address)
    if not (client.name or client.company_name):
        raise ValidationError('A client needs a name or a company name')
    return client


def _check_project(project: Project) -> Project:
    project.name = sanitize_text(project.name)
    project.description = sanitize_text(project.description, DESCRIPTION_MAX)
    if not project.name:
        raise ValidationError('A project needs a name')
    if not (project.client_id or project.client):
        raise ValidationError('A project must belong to a client')
    return project


def _refresh_quotes(condition) -> int:
    """Recompute the cached total of every quote matching ``condition``."""
    with db.session.no_autoflush:
        quotes = Quote.query.filter(condition).all()
        for quote in quotes:
            client, project = quote_selection(quote)
            refresh_total(quote, resolve_rates(client, project))
    if quotes:
        logger.info("refreshed %d quote total(s)", len(quotes))
    return len(quotes)


def _refresh_client_quotes(client: Client) -> None:
    # a client without an id yet has no quotes
    if client.id:
        _refresh_quotes(Quote.client_id == client.id)


def _refresh_project_quotes(project: Project) -> None:
    if project.id:
        _refresh_quotes(Quote.project_id == project.id)


def save_client(client: Client) -> Client:
    """Upsert ``client``; quotes priced from its rates get their totals refreshed."""
    db.session.add(_check_client(client))
    _refresh_client_quotes(client)
    _commit(f"Saving client {client.id}")
    return client


def save_clients(clients: Iterable[Client]) -> List[Client]:
    """Upsert several clients in one transaction; nothing is written if one is invalid."""
    clients = [_check_client(c) for c in clients]
    db.session.add_all(clients)
    for client in clients:
        _refresh_client_quotes(client)
    _commit(f"Saving {len(clients)} client(s)")
    return clients


def save_project(project: Project) -> Project:
    db.session.add(_check_project(project))
    _refresh_project_quotes(project)
    _commit(f"Saving project {project.id}")
    return project


def save_projects(projects: Iterable[Project]) -> List[Project]:
    projects = [_check_project(p) for p in projects]
    db.session.add_all(projects)
    for project in projects:
        _refresh_project_quotes(project)
    _commit(f"Saving {len(projects)} project(s)")
    return projects


def _selected(related, related_id, model):
    if related_id and (related is None or related.id != related_id):
        return db.session.get(model, related_id)
    return related


def quote_selection(quote: Quote):
    """The client and project a quote currently points at, by id first."""
    with db.session.no_autoflush:
        client = _selected(quote.client, quote.client_id, Client)
        project = _selected(quote.project, quote.project_id, Project)
    return client, project


def save_quote(quote: Quote) -> Quote:
    """Validate, sanitise, recompute the total and upsert ``quote``."""
    client, project = quote_selection(quote)
    if client is None or project is None:
        raise ValidationError('Select a client and a project before saving the quote')
    if project.client_id != client.id and project.client is not client:
        raise ValidationError('The project does not belong to the selected client')
    quote.client = client
    quote.project = project
    if quote.status not in {s.value for s in QuoteStatus}:
        raise ValidationError(f"Unknown status '{quote.status}'")
    for section in quote.sections:
        section.title = sanitize_text(section.title, TITLE_MAX)
        for item in section.items:
            item.description = sanitize_text(item.description, DESCRIPTION_MAX)
    db.session.add(quote)
    refresh_total(quote, resolve_rates(client, project))
    quote.updated_at = utcnow()
    _commit(f"Saving quote {quote.id}")
    return quote


def delete_quote(quote_id: str) -> int:
    quote = db.session.get(Quote, quote_id)
    if quote is None:
        return 0
    db.session.delete(quote)
    _commit(f"Deleting quote {quote_id}")
    return 1


def _delete_quotes(condition) -> int:
    quotes = Quote.query.filter(condition).all()
    for quote in quotes:
        db.session.delete(quote)
    return len(quotes)


def delete_project(project_id: str) -> int:
    """Delete a project and every quote referencing it."""
    removed = _delete_quotes(Quote.project_id == project_id)
    project = db.session.get(Project, project_id)
    if project is not None:
        db.session.delete(project)
    _commit(f"Deleting project {project_id}")
    logger.info("project %s deleted with %d quote(s)", project_id, removed)
    return removed


def delete_client(client_id: str) -> int:
    """Delete a client with its projects (relationship cascade) and quotes tied to either."""
    projects = Project.query.filter_by(client_id=client_id).all()
    project_ids = [p.id for p in projects]
    condition = Quote.client_id == client_id
    if project_ids:
        condition = or_(condition, Quote.project_id.in_(project_ids))
    removed = _delete_quotes(condition)
    client = db.session.get(Client, client_id)
    if client is not None:
        db.session.delete(client)
    _commit(f"Deleting client {client_id}")
    logger.info("client %s deleted with %d project(s), %d quote(s)",
                client_id, len(project_ids), removed)
    return removed
