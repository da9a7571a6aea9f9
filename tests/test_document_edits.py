import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from chiffrage.errors import ValidationError
from chiffrage.quotes import document


def test_new_quote_has_one_empty_section_with_one_empty_item():
    now = datetime(2026, 3, 1, 9, 0)
    quote = document.new_quote(now=now)
    assert quote.status == 'DRAFT'
    assert quote.version == 1
    assert quote.reference.startswith('DEV-2026-')
    assert quote.valid_until == datetime(2026, 3, 31, 9, 0)
    assert len(quote.sections) == 1
    assert quote.sections[0].title == 'Nouvelle Phase'
    assert len(quote.sections[0].items) == 1
    assert quote.sections[0].items[0].details == {}


def test_zero_days_removes_the_role():
    item = document.new_item('API', {'Dev': 2, 'QA': 0})
    assert item.details == {'Dev': 2.0}
    document.set_item_days(item, 'Dev', 0)
    assert item.details == {}
    assert 'Dev' not in item.details


def test_invalid_days_are_rejected():
    item = document.new_item('API')
    with pytest.raises(ValidationError):
        document.set_item_days(item, 'Dev', -1)
    with pytest.raises(ValidationError):
        document.set_item_days(item, 'Dev', 'two')
    with pytest.raises(ValidationError):
        document.set_item_days(item, '  ', 1)
    assert item.details == {}


def test_text_is_sanitized():
    quote = document.new_quote()
    section = quote.sections[0]
    document.set_section_title(section, '  <b>Phase   1</b> ')
    assert section.title == 'bPhase 1/b'
    document.set_item_description(section.items[0], 'x' * 2000)
    assert len(section.items[0].description) == 1000


def test_duplicate_section_is_inserted_after_source():
    quote = document.new_quote()
    first = quote.sections[0]
    document.set_item_days(first.items[0], 'Dev', 1.5)
    last = document.add_section(quote, 'Run')
    copy = document.duplicate_section(quote, first.id)

    assert [s.id for s in quote.sections] == [first.id, copy.id, last.id]
    assert [s.position for s in quote.sections] == [0, 1, 2]
    assert copy.title == 'Nouvelle Phase (Copie)'
    assert copy.items[0].id != first.items[0].id
    assert copy.items[0].details == {'Dev': 1.5}
    # independent details
    document.set_item_days(copy.items[0], 'Dev', 3)
    assert first.items[0].details == {'Dev': 1.5}


def test_duplicate_and_move_items():
    quote = document.new_quote()
    section = quote.sections[0]
    a = section.items[0]
    b = document.add_item(section, 'B', {'Dev': 1})
    a_copy = document.duplicate_item(section, a.id)
    assert [i.id for i in section.items] == [a.id, a_copy.id, b.id]

    document.move_item(section, b.id, 0)
    assert [i.id for i in section.items] == [b.id, a.id, a_copy.id]
    assert [i.position for i in section.items] == [0, 1, 2]

    document.remove_item(section, a.id)
    assert [i.id for i in section.items] == [b.id, a_copy.id]


def test_move_section_keeps_other_order():
    quote = document.new_quote()
    s1 = quote.sections[0]
    s2 = document.add_section(quote, 'Two')
    s3 = document.add_section(quote, 'Three')
    document.move_section(quote, s3.id, 0)
    assert [s.id for s in quote.sections] == [s3.id, s1.id, s2.id]
    with pytest.raises(ValidationError):
        document.move_section(quote, s1.id, 5)
    with pytest.raises(ValidationError):
        document.find_section(quote, 'nope')


@pytest.mark.parametrize('days', ['nan', 'inf', float('-inf'), float('nan')])
def test_non_finite_days_are_rejected(days):
    item = document.new_item('API', {'Dev': 1})
    with pytest.raises(ValidationError):
        document.set_item_days(item, 'Dev', days)
    assert item.details == {'Dev': 1.0}
