import logging
from pathlib import Path

import click
from flask.cli import AppGroup

from chiffrage import db, storage
from chiffrage.exports.workbook import build_workbook, write_xlsx
from chiffrage.models import Client, Project, QuoteStatus
from chiffrage.quotes.document import new_item, new_quote, new_section
from chiffrage.quotes.totals import quote_total
from chiffrage.rates import resolve_rates

logger = logging.getLogger(__name__)

DEFAULT_ROLES = {
    "Directeur général": 1050,
    "Directeur projet": 880,
    "Chef de projet senior": 680,
    "Chef de projet": 600,
    "UX designer": 720,
    "UI designer": 650,
    "Data Analyst": 720,
    "Directeur technique": 1050,
    "SRE": 920,
    "Full stack developer": 800,
}

quotes_cli = AppGroup("quotes", help="Quote maintenance commands.")


def seed_demo_data() -> bool:
    """Insert two clients, three projects and one quote into an empty database."""
    if Client.query.first() is not None:
        return False

    tfs = Client(name="Alice Dupont", company_name="Toyota Financial Services",
                 email="alice@tfs.com", address="123 Avenue de la Grande Armée, Paris",
                 default_rates=dict(DEFAULT_ROLES))
    green = Client(name="Bob Martin", company_name="GreenEnergy",
                   email="bob@green.com", address="456 Eco Blvd, Lyon",
                   default_rates={"Chef de projet": 550, "Full stack developer": 650,
                                  "UX designer": 600})
    storage.save_clients([tfs, green])

    public_site = Project(client=tfs, name="Évolutions graphiques espace public",
                          specific_rates={"Full stack developer": 850})
    storage.save_projects([
        public_site,
        Project(client=tfs, name="Maintenance Annuelle", specific_rates={}),
        Project(client=green, name="Dashboard IoT", specific_rates={}),
    ])

    quote = new_quote(client=tfs, project=public_site, reference="DEV-2023-001")
    quote.status = QuoteStatus.ACCEPTED.value
    quote.has_vat = True
    quote.sections.remove(quote.sections[0])
    conception = new_section("1 - PROJECT MANAGEMENT & CONCEPTION", with_item=False)
    conception.items.append(new_item("Conception, pilotage",
                                     {"Directeur projet": 1, "Chef de projet": 2}))
    development = new_section("2 - DEVELOPPEMENT", with_item=False)
    development.items.append(new_item(
        "Déblocage FAQ + tests responsive",
        {"Directeur projet": 0.1, "Chef de projet": 0.25, "Full stack developer": 0.55}))
    development.items.append(new_item(
        "Blog - simple",
        {"Directeur projet": 0.1, "Chef de projet": 1, "Full stack developer": 4.4}))
    quote.sections.append(conception)
    quote.sections.append(development)
    storage.save_quote(quote)
    return True


@quotes_cli.command("seed")
def seed_command() -> None:
    """Load demo clients, projects and a quote."""
    if seed_demo_data():
        click.echo("Demo data loaded.")
    else:
        click.echo("Database already holds clients, nothing to do.")


@quotes_cli.command("recalc")
def recalc_command() -> None:
    """Recompute every cached quote total and report drifted ones."""
    fixed = 0
    for quote in storage.get_quotes():
        fresh = quote_total(quote, resolve_rates(quote.client, quote.project))
        if fresh != quote.total_amount:
            logger.warning("quote %s total drifted: %s -> %s",
                           quote.id, quote.total_amount, fresh)
            quote.total_amount = fresh
            fixed += 1
    db.session.commit()
    click.echo(f"{fixed} quote total(s) corrected.")


@quotes_cli.command("export-xlsx")
@click.argument("quote_id")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def export_command(quote_id: str, path: Path) -> None:
    """Write the formula workbook of QUOTE_ID to PATH."""
    quote = storage.get_quote(quote_id)
    if quote is None:
        raise click.ClickException(f"Unknown quote {quote_id}")
    rates = resolve_rates(quote.client, quote.project)
    path.write_bytes(write_xlsx(build_workbook(quote, rates, quote.client, quote.project)))
    click.echo(f"Wrote {path}")
