# chiffrage/quotes/document.py
"""Structural edits on a quote's section/item tree.

These helpers only touch the in-memory objects; persisting them and
recomputing ``total_amount`` is up to the caller (see
``chiffrage.storage.save_quote`` and ``chiffrage.quotes.totals.refresh_total``).
"""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from chiffrage.errors import ValidationError
from chiffrage.models import Quote, QuoteItem, QuoteSection, QuoteStatus, new_id, utcnow
from chiffrage.sanitize import DESCRIPTION_MAX, TITLE_MAX, sanitize_text, strip_control

DEFAULT_SECTION_TITLE = 'Nouvelle Phase'
COPY_SUFFIX = ' (Copie)'

IdFactory = Callable[[], str]


def new_reference(now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return f"DEV-{now.year}-{random.randint(1000, 9999)}"


def new_item(description: str = '', details: Optional[Mapping[str, float]] = None,
             id_factory: IdFactory = new_id) -> QuoteItem:
    item = QuoteItem(
        id=id_factory(),
        description=sanitize_text(description, DESCRIPTION_MAX),
        details={},
    )
    for role, days in (details or {}).items():
        set_item_days(item, role, days)
    return item


def new_section(title: str = DEFAULT_SECTION_TITLE, with_item: bool = True,
                id_factory: IdFactory = new_id) -> QuoteSection:
    section = QuoteSection(id=id_factory(), title=sanitize_text(title, TITLE_MAX))
    if with_item:
        section.items.append(new_item(id_factory=id_factory))
    return section


def new_quote(client=None, project=None, reference: Optional[str] = None,
              validity_days: int = 30, id_factory: IdFactory = new_id,
              now: Optional[datetime] = None) -> Quote:
    """A fresh DRAFT quote holding one empty section with one empty item."""
    now = now or utcnow()
    quote = Quote(
        id=id_factory(),
        reference=reference or new_reference(now),
        version=1,
        status=QuoteStatus.DRAFT.value,
        has_vat=False,
        total_amount=0.0,
        notes='',
        created_at=now,
        updated_at=now,
        valid_until=now + timedelta(days=validity_days),
    )
    if client is not None:
        quote.client = client
    if project is not None:
        quote.project = project
    quote.sections.append(new_section(id_factory=id_factory))
    return quote


def find_section(quote, section_id: str) -> QuoteSection:
    for section in quote.sections:
        if section.id == section_id:
            return section
    raise ValidationError(f"Unknown section '{section_id}'")


def find_item(section, item_id: str) -> QuoteItem:
    for item in section.items:
        if item.id == item_id:
            return item
    raise ValidationError(f"Unknown item '{item_id}'")


def add_section(quote, title: str = DEFAULT_SECTION_TITLE,
                id_factory: IdFactory = new_id) -> QuoteSection:
    section = new_section(title, id_factory=id_factory)
    quote.sections.append(section)
    return section


def remove_section(quote, section_id: str) -> None:
    quote.sections.remove(find_section(quote, section_id))


def add_item(section, description: str = '', details: Optional[Mapping[str, float]] = None,
             id_factory: IdFactory = new_id) -> QuoteItem:
    item = new_item(description, details, id_factory=id_factory)
    section.items.append(item)
    return item


def remove_item(section, item_id: str) -> None:
    section.items.remove(find_item(section, item_id))


def clone_item(item, id_factory: IdFactory = new_id) -> QuoteItem:
    return QuoteItem(
        id=id_factory(),
        description=item.description,
        details=dict(item.details or {}),
    )


def clone_section(section, title: Optional[str] = None,
                  id_factory: IdFactory = new_id) -> QuoteSection:
    copy = QuoteSection(
        id=id_factory(),
        title=section.title if title is None else title,
    )
    for item in section.items:
        copy.items.append(clone_item(item, id_factory))
    return copy


def duplicate_section(quote, section_id: str, id_factory: IdFactory = new_id) -> QuoteSection:
    """Insert a copy of the section right after it, titled '<title> (Copie)'."""
    source = find_section(quote, section_id)
    title = sanitize_text(f"{source.title}{COPY_SUFFIX}", TITLE_MAX)
    copy = clone_section(source, title, id_factory)
    quote.sections.insert(quote.sections.index(source) + 1, copy)
    return copy


def duplicate_item(section, item_id: str, id_factory: IdFactory = new_id) -> QuoteItem:
    source = find_item(section, item_id)
    copy = clone_item(source, id_factory)
    section.items.insert(section.items.index(source) + 1, copy)
    return copy


def _move(collection, entry, index: int) -> None:
    if not 0 <= index < len(collection):
        raise ValidationError(f"Position {index} is out of range")
    collection.remove(entry)
    collection.insert(index, entry)


def move_section(quote, section_id: str, index: int) -> None:
    _move(quote.sections, find_section(quote, section_id), index)


def move_item(section, item_id: str, index: int) -> None:
    _move(section.items, find_item(section, item_id), index)


def set_section_title(section, title: str) -> None:
    section.title = sanitize_text(title, TITLE_MAX)


def set_item_description(item, description: str) -> None:
    item.description = sanitize_text(description, DESCRIPTION_MAX)


def set_item_days(item, role: str, days) -> None:
    """Allocate ``days`` of ``role`` to the item; 0 removes the role."""
    role = strip_control(role).strip()
    if not role:
        raise ValidationError('Role name is required')
    try:
        value = float(days)
    except (TypeError, ValueError):
        raise ValidationError(f"Days for role '{role}' must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"Days for role '{role}' must be a finite number")
    if value < 0:
        raise ValidationError(f"Days for role '{role}' must not be negative")
    if item.details is None:
        item.details = {}
    if value == 0:
        item.details.pop(role, None)
    else:
        item.details[role] = value
