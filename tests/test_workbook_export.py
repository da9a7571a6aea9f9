import ast
import io
import operator
import os
import re
import sys

import pytest
from openpyxl import load_workbook
from openpyxl.utils import column_index_from_string, get_column_letter

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from chiffrage.errors import ExportError
from chiffrage.exports.workbook import Cell, WorkbookModel, build_workbook, number_literal, write_xlsx
from chiffrage.models import Client, Project
from chiffrage.quotes import document
from chiffrage.quotes.document import new_item, new_quote, new_section
from chiffrage.quotes.totals import quote_total, totals_summary
from chiffrage.rates import resolve_rates

_RANGE = re.compile(r'SUM\(([A-Z]+)(\d+):([A-Z]+)(\d+)\)')
_REF = re.compile(r'\b([A-Z]+)(\d+)\b')
_OPS = {ast.Add: operator.add, ast.Mult: operator.mul}


def _number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _arith(node):
    if isinstance(node, ast.Expression):
        return _arith(node.body)
    if isinstance(node, ast.Constant):
        return float(node.value)
    if isinstance(node, ast.BinOp) and type(node.op) in _OPS:
        return _OPS[type(node.op)](_arith(node.left), _arith(node.right))
    raise AssertionError(f"unexpected formula node {ast.dump(node)}")


def evaluate(model, ref):
    """Recalculate one cell the way a spreadsheet would."""
    cell = model.cell(ref)
    if cell is None:
        return 0.0
    if not cell.is_formula:
        return _number(cell.value)

    def sum_range(match):
        c1, r1, c2, r2 = match.groups()
        total = 0.0
        for row in range(int(r1), int(r2) + 1):
            for col in range(column_index_from_string(c1), column_index_from_string(c2) + 1):
                total += evaluate(model, f"{get_column_letter(col)}{row}")
        return repr(total)

    expr = _RANGE.sub(sum_range, cell.formula)
    expr = _REF.sub(lambda m: repr(evaluate(model, m.group(0))), expr)
    return _arith(ast.parse(expr, mode='eval'))


def sample():
    client = Client(company_name='Acme', default_rates={'Dev': 500, 'Design': 600, 'PM': 700})
    project = Project(name='Site', specific_rates={'Dev': 550})
    quote = new_quote(client=client, project=project)
    quote.sections.remove(quote.sections[0])
    build = new_section('Build', with_item=False)
    build.items.append(new_item('Landing page', {'Dev': 2, 'Design': 0.5}))
    build.items.append(new_item('Blog', {'Dev': 4.4, 'PM': 0.1, 'Copywriter': 1}))
    run = new_section('Run', with_item=False)
    run.items.append(new_item('Hosting', {'Dev': 0.25}))
    run.items.append(new_item('Empty line'))
    quote.sections.append(build)
    quote.sections.append(run)
    quote.has_vat = True
    return quote, client, project, resolve_rates(client, project)


def price_ref(model, row):
    return f"{get_column_letter(len(model.roles) + 3)}{row}"


def days_ref(model, row):
    return f"{get_column_letter(len(model.roles) + 2)}{row}"


def test_number_literal():
    assert number_literal(600) == '600'
    assert number_literal(550.0) == '550'
    assert number_literal(0.2) == '0.2'
    assert number_literal(None) == '0'


def test_roles_include_unpriced_roles_after_rate_table():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    assert model.roles == ['Dev', 'Design', 'PM', 'Copywriter']


def test_formulas_match_the_engine():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    summary = totals_summary(quote, rates)

    assert evaluate(model, model.total_ht_ref) == pytest.approx(summary['total_ht'])
    assert evaluate(model, model.vat_ref) == pytest.approx(summary['vat'])
    assert evaluate(model, model.ttc_ref) == pytest.approx(summary['total_ttc'])

    items = [i for s in quote.sections for i in s.items]
    assert len(items) == len(model.item_rows)
    for item, row in zip(items, model.item_rows):
        assert evaluate(model, days_ref(model, row)) == pytest.approx(sum(item.details.values()))


def test_item_formula_bakes_rates_in():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    row = model.item_rows[0]
    assert model.cell(days_ref(model, row)).formula == f"SUM(B{row}:E{row})"
    assert model.cell(price_ref(model, row)).formula == \
        f"(B{row}*550)+(C{row}*600)+(D{row}*700)+(E{row}*0)"
    assert evaluate(model, price_ref(model, row)) == pytest.approx(1400)


def test_editing_a_day_cell_recomputes_like_the_engine():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    row = model.item_rows[0]
    model.cell(f"B{row}").value = 3

    document.set_item_days(quote.sections[0].items[0], 'Dev', 3)
    assert evaluate(model, price_ref(model, row)) == pytest.approx(3 * 550 + 0.5 * 600)
    assert evaluate(model, model.total_ht_ref) == pytest.approx(quote_total(quote, rates))


def test_no_vat_rows_without_vat():
    quote, client, project, rates = sample()
    quote.has_vat = False
    model = build_workbook(quote, rates, client, project)
    assert model.vat_ref is None and model.ttc_ref is None
    assert model.rows[-1][-1].formula.startswith('SUM(')


def test_empty_quote_and_empty_rates():
    quote = new_quote()
    quote.sections.remove(quote.sections[0])
    model = build_workbook(quote, {})
    assert model.roles == []
    assert model.item_rows == []
    assert model.cell(model.total_ht_ref).formula == '0'

    quote = new_quote()
    model = build_workbook(quote, {})
    row = model.item_rows[0]
    assert model.cell(days_ref(model, row)).formula == '0'
    assert model.cell(price_ref(model, row)).formula == '0'


def test_header_block_names_client_and_project():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    assert model.rows[0][0].value == 'CHIFFRAGE'
    assert model.rows[2][1].value == 'Acme'
    assert model.rows[3][1].value == 'Site'


def test_write_xlsx_keeps_formulas():
    quote, client, project, rates = sample()
    model = build_workbook(quote, rates, client, project)
    wb = load_workbook(io.BytesIO(write_xlsx(model)))
    ws = wb['Chiffrage']
    row = model.item_rows[0]
    assert ws[price_ref(model, row)].value == '=' + model.cell(price_ref(model, row)).formula
    assert ws[model.total_ht_ref].value.startswith('=SUM(')
    assert ws[model.ttc_ref].value == f"={model.total_ht_ref}*1.2"
    assert ws[f"B{row}"].value == 2


def test_formula_looking_text_is_written_as_text():
    quote = new_quote()
    document.set_item_description(quote.sections[0].items[0], '=HYPERLINK("x")')
    document.set_item_days(quote.sections[0].items[0], '=1+1', 1)
    model = build_workbook(quote, {'=1+1': 100})
    ws = load_workbook(io.BytesIO(write_xlsx(model)))['Chiffrage']

    role_cells = [c for row in ws.iter_rows() for c in row if c.value == '=1+1']
    # rate grid and section header
    assert len(role_cells) == 2
    assert all(c.data_type == 's' for c in role_cells)
    row = model.item_rows[0]
    assert ws[price_ref(model, row)].data_type == 'f'
    assert ws[f"A{row}"].data_type == 's'


def test_illegal_characters_are_reported_as_export_errors():
    model = WorkbookModel(sheet_name='Chiffrage', roles=[])
    model.append(Cell('line\x01break'))
    with pytest.raises(ExportError):
        write_xlsx(model)


def test_control_characters_never_reach_the_workbook():
    quote = new_quote()
    item = quote.sections[0].items[0]
    document.set_item_description(item, 'line\x01break')
    document.set_item_days(item, 'Dev\x02', 1)
    assert item.description == 'linebreak'
    assert item.details == {'Dev': 1.0}
    model = build_workbook(quote, {'Dev': 500})
    ws = load_workbook(io.BytesIO(write_xlsx(model)))['Chiffrage']
    assert ws[f"A{model.item_rows[0]}"].value.strip() == 'linebreak'
