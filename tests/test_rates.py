import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from chiffrage.errors import ValidationError
from chiffrage.models import Client, Project
from chiffrage.quotes.document import new_item, new_quote, new_section
from chiffrage.rates import normalize_rate_table, rate_warnings, resolve_rates, unpriced_roles


def test_project_overrides_replace_and_add_roles():
    client = Client(company_name='Acme', default_rates={'Dev': 500, 'Design': 600})
    project = Project(name='Site', specific_rates={'Dev': 550, 'SRE': 900})
    rates = resolve_rates(client, project)
    assert rates == {'Dev': 550, 'Design': 600, 'SRE': 900}
    # inputs untouched
    assert client.default_rates == {'Dev': 500, 'Design': 600}
    assert project.specific_rates == {'Dev': 550, 'SRE': 900}


def test_missing_client_or_project_never_raises():
    assert resolve_rates(None, None) == {}
    client = Client(company_name='Acme', default_rates={'Dev': 500})
    assert resolve_rates(client, None) == {'Dev': 500}
    project = Project(name='Site', specific_rates={'Dev': 550})
    assert resolve_rates(None, project) == {'Dev': 550}
    # unflushed rows have no JSON default yet
    assert resolve_rates(Client(company_name='Empty'), Project(name='Bare')) == {}


def test_resolution_is_case_sensitive():
    client = Client(company_name='Acme', default_rates={'Dev': 500})
    project = Project(name='Site', specific_rates={'dev': 700})
    assert resolve_rates(client, project) == {'Dev': 500, 'dev': 700}


def test_normalize_rate_table_trims_and_validates():
    assert normalize_rate_table({' Dev ': '550', '': 10, '  ': 3}) == {'Dev': 550.0}
    assert normalize_rate_table(None) == {}
    with pytest.raises(ValidationError):
        normalize_rate_table({'Dev': -1})
    with pytest.raises(ValidationError):
        normalize_rate_table({'Dev': 'cheap'})


def test_unpriced_roles_are_reported_with_hint():
    quote = new_quote()
    quote.sections.remove(quote.sections[0])
    section = new_section('Build', with_item=False)
    section.items.append(new_item('Landing page', {'Dev': 2, 'dev': 1, 'QA': 0.5}))
    section.items.append(new_item('Blog', {'QA': 1}))
    quote.sections.append(section)
    rates = {'Dev': 550}

    assert unpriced_roles(quote, rates) == ['dev', 'QA']
    warnings = rate_warnings(quote, rates)
    assert len(warnings) == 2
    assert "did you mean 'Dev'" in warnings[0]
    assert 'QA' in warnings[1] and 'did you mean' not in warnings[1]


@pytest.mark.parametrize('price', ['nan', 'inf', float('inf')])
def test_non_finite_rates_are_rejected(price):
    with pytest.raises(ValidationError):
        normalize_rate_table({'Dev': price})


def test_rate_role_names_lose_control_characters():
    assert normalize_rate_table({'Dev\x01': 500, '\x02': 10}) == {'Dev': 500.0}
