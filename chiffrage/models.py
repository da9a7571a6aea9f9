import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.ext.orderinglist import ordering_list

from chiffrage import db


def new_id() -> str:
    """Default identity generator for clients, projects, quotes, sections and items."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QuoteStatus(str, enum.Enum):
    DRAFT    = 'DRAFT'
    ESTIMATE = 'ESTIMATE'
    SENT     = 'SENT'
    ACCEPTED = 'ACCEPTED'
    REJECTED = 'REJECTED'
    PENDING  = 'PENDING'
    LATE     = 'LATE'


class Client(db.Model):
    __tablename__ = 'client'
    id            = db.Column(db.String(36), primary_key=True, default=new_id)
    name          = db.Column(db.String(500), nullable=False, default='')
    company_name  = db.Column(db.String(500), nullable=False, default='')
    email         = db.Column(db.String(500), default='')
    address       = db.Column(db.String(500), default='')
    # role name -> daily price
    default_rates = db.Column(MutableDict.as_mutable(db.JSON), nullable=False, default=dict)

    projects = db.relationship('Project', back_populates='client', lazy=True,
                               cascade='all, delete')


class Project(db.Model):
    __tablename__ = 'project'
    id             = db.Column(db.String(36), primary_key=True, default=new_id)
    client_id      = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=False)
    name           = db.Column(db.String(500), nullable=False)
    description    = db.Column(db.String(1000), default='')
    # overrides applied on top of the client's default rates
    specific_rates = db.Column(MutableDict.as_mutable(db.JSON), nullable=False, default=dict)

    client = db.relationship('Client', back_populates='projects')


class Quote(db.Model):
    __tablename__ = 'quote'
    id           = db.Column(db.String(36), primary_key=True, default=new_id)
    reference    = db.Column(db.String(200), nullable=False, index=True)
    version      = db.Column(db.Integer, nullable=False, default=1)
    client_id    = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=True)
    project_id   = db.Column(db.String(36), db.ForeignKey('project.id'), nullable=True)
    status       = db.Column(db.String(16), nullable=False, default=QuoteStatus.DRAFT.value)
    has_vat      = db.Column(db.Boolean, nullable=False, default=False)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    notes        = db.Column(db.Text, default='')
    created_at   = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at   = db.Column(db.DateTime, nullable=False, default=utcnow)
    valid_until  = db.Column(db.DateTime, nullable=True)

    client  = db.relationship('Client')
    project = db.relationship('Project')
    sections = db.relationship(
        'QuoteSection',
        back_populates='quote',
        order_by='QuoteSection.position',
        collection_class=ordering_list('position'),
        cascade='all, delete-orphan',
    )


class QuoteSection(db.Model):
    __tablename__ = 'quote_section'
    id       = db.Column(db.String(36), primary_key=True, default=new_id)
    quote_id = db.Column(db.String(36), db.ForeignKey('quote.id'), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    title    = db.Column(db.String(500), nullable=False, default='')

    quote = db.relationship('Quote', back_populates='sections')
    items = db.relationship(
        'QuoteItem',
        back_populates='section',
        order_by='QuoteItem.position',
        collection_class=ordering_list('position'),
        cascade='all, delete-orphan',
    )


class QuoteItem(db.Model):
    __tablename__ = 'quote_item'
    id          = db.Column(db.String(36), primary_key=True, default=new_id)
    section_id  = db.Column(db.String(36), db.ForeignKey('quote_section.id'), nullable=False)
    position    = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(1000), nullable=False, default='')
    # role name -> days; roles at 0 days are never stored
    details     = db.Column(MutableDict.as_mutable(db.JSON), nullable=False, default=dict)

    section = db.relationship('QuoteSection', back_populates='items')
