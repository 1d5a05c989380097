# Overview: Flask CLI command groups for bootstrap and the scheduled cheque jobs.

# backend/pdcms/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Cheque jobs (schedule daily, e.g. cron at 01:00):
# - python -m flask pdcs mark-due [--today 2026-10-18]
#   Move RECEIVED cheques dated within the due window to DUE.
# - python -m flask pdcs reminders --date 2026-10-21
#   List DUE cheques dated on the given day (input for the reminder sender).
# - python -m flask pdcs summary
#   Print the dashboard headline numbers.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import pdc_dashboard_service, pdc_lifecycle_service


ISO_DATE = click.DateTime(formats=["%Y-%m-%d"])


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left untouched)."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('pdcs')
def pdcs_group():
    """Post-dated cheque jobs and reports."""


@pdcs_group.command('mark-due')
@click.option('--today', 'as_of', type=ISO_DATE, default=None, help='Business date (default: today, UTC)')
@with_appcontext
def mark_due_cli(as_of):
    """
    Reclassify RECEIVED cheques inside the due window as DUE.

    Safe to re-run: cheques already moved on are skipped.
    """
    count = pdc_lifecycle_service.reclassify_due(as_of.date() if as_of else None)
    click.echo(f"PASS Transitioned {count} PDC(s) from RECEIVED to DUE")


@pdcs_group.command('reminders')
@click.option('--date', 'reminder_date', type=ISO_DATE, required=True, help='Cheque date to remind about')
@with_appcontext
def reminders_cli(reminder_date):
    """List DUE cheques dated on --date."""
    pdcs = pdc_lifecycle_service.pdcs_due_for_reminder(reminder_date.date())
    if not pdcs:
        click.echo("No DUE cheques for that date.")
        return

    for pdc in pdcs:
        tenant = pdc.tenant.full_name if pdc.tenant else f"tenant {pdc.tenant_id}"
        click.echo(
            f"  {pdc.cheque_number:<20} {pdc.bank_name:<25} "
            f"{pdc_dashboard_service.format_amount(pdc.amount):>18}  {tenant}"
        )
    click.echo(f"\nTotal: {len(pdcs)} cheque(s)")


@pdcs_group.command('summary')
@with_appcontext
def summary_cli():
    """Print the dashboard summary."""
    summary = pdc_dashboard_service.summary()
    click.echo(f"Holder:                 {pdc_dashboard_service.holder_name()}")
    click.echo(f"As of:                  {summary['as_of']}")
    click.echo(f"Total received:         {summary['total_received']}")
    click.echo(
        f"Due this week:          {summary['due_this_week_count']} "
        f"({summary['formatted_due_this_week_total']})"
    )
    click.echo(
        f"Deposited this month:   {summary['deposited_this_month_count']} "
        f"({summary['formatted_deposited_this_month_total']})"
    )
    click.echo(f"Outstanding:            {summary['formatted_outstanding_total']}")
    click.echo(f"Bounced (recent):       {summary['bounced_recent_count']}")
    click.echo(f"Bounce rate:            {summary['bounce_rate_percent']:.2f}%")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(pdcs_group)
