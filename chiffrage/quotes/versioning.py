# chiffrage/quotes/versioning.py
"""Deriving new quotes from existing ones.

A quote can be re-issued as the next version of its reference family or
copied into a brand new family.  The source quote is only read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from chiffrage.models import Quote, QuoteStatus, new_id, utcnow
from chiffrage.quotes.document import IdFactory, clone_section

VERSION = 'version'
COPY = 'copy'
COPY_SUFFIX = '-COPY'


def next_version(quote, family: Iterable) -> int:
    """One above the highest version among ``family`` and ``quote`` itself."""
    highest = quote.version or 1
    for other in family:
        if other.reference == quote.reference:
            highest = max(highest, other.version or 1)
    return highest + 1


def duplicate_quote(quote, family: Iterable, mode: str = VERSION,
                    id_factory: IdFactory = new_id,
                    now: Optional[datetime] = None) -> Quote:
    """Return a new, unsaved quote derived from ``quote``.

    ``family`` is every known quote sharing the reference (extra quotes are
    ignored).  In ``version`` mode the reference is kept and the version
    bumped past the family's maximum; in ``copy`` mode the reference gets a
    ``-COPY`` suffix and the version restarts at 1.  Both modes reset the
    status to DRAFT, stamp fresh timestamps and deep clone every section
    and item under new ids.
    """
    if mode == VERSION:
        reference = quote.reference
        version = next_version(quote, family)
    elif mode == COPY:
        reference = f"{quote.reference}{COPY_SUFFIX}"
        version = 1
    else:
        raise ValueError(f"Unknown duplication mode: {mode!r}")

    now = now or utcnow()
    copy = Quote(
        id=id_factory(),
        reference=reference,
        version=version,
        client_id=quote.client_id,
        project_id=quote.project_id,
        status=QuoteStatus.DRAFT.value,
        has_vat=bool(quote.has_vat),
        total_amount=quote.total_amount or 0.0,
        notes=quote.notes,
        created_at=now,
        updated_at=now,
        valid_until=quote.valid_until,
    )
    if quote.client is not None:
        copy.client = quote.client
    if quote.project is not None:
        copy.project = quote.project
    for section in quote.sections:
        copy.sections.append(clone_section(section, id_factory=id_factory))
    return copy


def version_family(quote, quotes: Iterable) -> List:
    """Quotes sharing ``quote``'s reference, highest version first."""
    family = [q for q in quotes if q.reference == quote.reference]
    return sorted(family, key=lambda q: q.version or 0, reverse=True)
