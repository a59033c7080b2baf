import urllib.parse

import click
from flask import current_app
from flask.cli import with_appcontext

from .admin.management import create_user
from .finance.emi import generate_amortization_schedule, loan_summary
from .seed import seed_demo
from .store import get_store
from .utils import format_currency


@click.command("seed-demo")
@with_appcontext
def seed_demo_command():
    """Replace the in-memory store with the demo dataset."""
    store = seed_demo(get_store(), current_app.config["DEMO_PASSWORD"])
    for name, count in store.counts().items():
        click.echo(f"{name:22s} {count}")


@click.command("create-user")
@click.argument("name")
@click.argument("email")
@click.argument("password")
@click.option("--role", type=click.Choice(["admin", "staff"]), default="staff", show_default=True)
@click.option("--partner-id", type=int, default=None, help="Partner the staff user belongs to.")
@with_appcontext
def create_user_command(name, email, password, role, partner_id):
    """Create a user in the running store."""
    user = create_user(get_store(), name, email, password, role, partner_id)
    click.echo(f"User {user['email']} created with id {user['id']} ({user['role']}).")


@click.command("emi")
@click.argument("principal", type=float)
@click.argument("annual_rate", type=float)
@click.argument("tenure_months", type=int)
@click.option("--schedule", is_flag=True, help="Print the month-by-month schedule as well.")
def emi_command(principal, annual_rate, tenure_months, schedule):
    """Print the EMI for a loan, e.g. `flask emi 100000 12 12`."""
    summary = loan_summary(principal, annual_rate, tenure_months)
    click.echo(f"EMI:            {format_currency(summary['emi'])}")
    click.echo(f"Total interest: {format_currency(summary['total_interest'])}")
    click.echo(f"Total amount:   {format_currency(summary['total_amount'])}")
    if schedule:
        for row in generate_amortization_schedule(principal, annual_rate, tenure_months):
            click.echo(f"{row['installment_number']:>3}  {row['due_date']}  {row['emi']:>10}  "
                       f"{row['principal']:>10}  {row['interest']:>8}  {row['outstanding_balance']:>12}")


def route_lines(app):
    lines = []
    for rule in app.url_map.iter_rules():
        methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
        lines.append(urllib.parse.unquote(f"{rule.endpoint:40s} {methods:20s} {rule}"))
    return sorted(lines)


@click.command("list-routes")
@with_appcontext
def list_routes_command():
    """Print all registered routes with their endpoint and methods."""
    for line in route_lines(current_app):
        click.echo(line)


def register_cli(app):
    for command in (seed_demo_command, create_user_command, emi_command, list_routes_command):
        app.cli.add_command(command)
