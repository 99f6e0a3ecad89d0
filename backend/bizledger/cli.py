# Overview: Flask CLI command groups for database bootstrap and spreadsheet export.

# backend/bizledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to bizledger (PowerShell: $env:FLASK_APP="bizledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables and seed the default expense categories (idempotent).
# - python -m flask system seed-categories
#   Seed the default expense categories only.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Export:
# - python -m flask export run expenses [--out exports/expenses.xlsx]
#   Write every record of an entity type to an .xlsx workbook.
#   Without --out the file lands in EXPORT_DIR as <entity>_<YYYY-MM-DD>.xlsx.

import os

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import expense_service, export_service
from .validation import DomainError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables and seed default expense categories."""
    click.echo("BUILD  Creating all tables...")
    db.create_all()

    created = expense_service.seed_default_categories()
    click.echo(f"PASS Seeded {created} expense categories")
    click.echo("DONE Database ready")


@system_group.command('seed-categories')
@with_appcontext
def seed_categories():
    """Seed the default expense categories (skips names that already exist)."""
    created = expense_service.seed_default_categories()
    if created:
        click.echo(f"PASS Seeded {created} expense categories")
    else:
        click.echo("WARN  Default categories already present, nothing to do")


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
    expense_service.seed_default_categories()

    click.echo("PASS Database reset complete")


@click.group('export')
def export_group():
    """Spreadsheet export commands."""


@export_group.command('run')
@click.argument('entity_type', type=click.Choice(sorted(export_service.LAYOUTS)))
@click.option('--out', 'out_path', default=None, help='Destination .xlsx path')
@with_appcontext
def export_run(entity_type, out_path):
    """Write every ENTITY_TYPE record to an .xlsx workbook."""
    try:
        filename, content = export_service.export_entity(entity_type)
    except DomainError as e:
        raise click.ClickException(str(e))

    if not out_path:
        export_dir = current_app.config["EXPORT_DIR"]
        os.makedirs(export_dir, exist_ok=True)
        out_path = os.path.join(export_dir, filename)

    with open(out_path, "wb") as fh:
        fh.write(content)

    click.echo(f"PASS Wrote {entity_type} export to {out_path} ({len(content)} bytes)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(export_group)
