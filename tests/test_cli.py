import os
import sys

import pytest
from openpyxl import load_workbook

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from chiffrage import create_app, db
from chiffrage.models import Client, Project, Quote


def setup_app():
    os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def test_seed_loads_demo_data_once():
    app = setup_app()
    runner = app.test_cli_runner()
    result = runner.invoke(args=['quotes', 'seed'])
    assert result.exit_code == 0
    assert 'Demo data loaded.' in result.output
    with app.app_context():
        assert Client.query.count() == 2
        assert Project.query.count() == 3
        quote = Quote.query.one()
        assert quote.reference == 'DEV-2023-001'
        assert quote.total_amount == pytest.approx(7213.5)

    result = runner.invoke(args=['quotes', 'seed'])
    assert 'nothing to do' in result.output
    with app.app_context():
        assert Client.query.count() == 2


def test_recalc_fixes_drifted_totals():
    app = setup_app()
    runner = app.test_cli_runner()
    runner.invoke(args=['quotes', 'seed'])
    with app.app_context():
        Quote.query.one().total_amount = 1
        db.session.commit()

    result = runner.invoke(args=['quotes', 'recalc'])
    assert '1 quote total(s) corrected.' in result.output
    with app.app_context():
        assert Quote.query.one().total_amount == pytest.approx(7213.5)
    assert '0 quote total(s)' in runner.invoke(args=['quotes', 'recalc']).output


def test_export_command(tmp_path):
    app = setup_app()
    runner = app.test_cli_runner()
    runner.invoke(args=['quotes', 'seed'])
    with app.app_context():
        quote_id = Quote.query.one().id
    target = tmp_path / 'quote.xlsx'

    result = runner.invoke(args=['quotes', 'export-xlsx', quote_id, str(target)])
    assert result.exit_code == 0
    ws = load_workbook(target)['Chiffrage']
    assert ws['B3'].value == 'Toyota Financial Services'

    result = runner.invoke(args=['quotes', 'export-xlsx', 'missing', str(target)])
    assert result.exit_code != 0
    assert 'Unknown quote' in result.output
