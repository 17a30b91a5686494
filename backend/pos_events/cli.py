# Overview: Flask CLI command groups for bootstrap, branch registry and dead-letter replay.

# backend/pos_events/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (DEV only; use `flask db upgrade` elsewhere).
#
# Branch registry:
# - python -m flask branches list
# - python -m flask branches create --ext-id BR001 --name "Main Branch" --address "123 Main St" --phone "+1-555-0101"
#   Create or update a branch by external id.
#
# Deferred write failures (dead letter):
# - python -m flask events failures [--all] [--limit 50] [--json]
#   List failed deferred writes (add --all to include replayed ones, --json for payloads).
# - python -m flask events replay <process_id>
#   Re-apply a failed event synchronously.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch
from .services.event_pipeline import ReplayError, list_failures, replay_failure


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo("PASS Database tables created")


@click.group('branches')
def branches_group():
    """Branch registry commands."""


@branches_group.command('list')
@with_appcontext
def list_branches():
    """List all branches."""
    branches = db.session.query(Branch).order_by(Branch.ext_id.asc()).all()
    if not branches:
        click.echo("No branches found")
        return
    for b in branches:
        status = "active" if b.is_active else "inactive"
        click.echo(f"{b.ext_id:<16} {b.name:<32} {status}")


@branches_group.command('create')
@click.option('--ext-id', required=True, help='External branch id used by POS terminals')
@click.option('--name', required=True, help='Display name')
@click.option('--address', default=None)
@click.option('--phone', default=None)
@click.option('--inactive', is_flag=True, default=False, help='Create the branch deactivated')
@with_appcontext
def create_branch(ext_id, name, address, phone, inactive):
    """Create a branch, or update it when the external id already exists."""
    branch = db.session.query(Branch).filter_by(ext_id=ext_id).first()
    created = branch is None
    if created:
        branch = Branch(ext_id=ext_id)
        db.session.add(branch)
    branch.name = name
    branch.address = address
    branch.phone = phone
    branch.is_active = not inactive
    db.session.commit()
    verb = "Created" if created else "Updated"
    click.echo(f"PASS {verb} branch {branch.ext_id} (ID: {branch.id})")


@click.group('events')
def events_group():
    """Deferred write inspection and replay."""


@events_group.command('failures')
@click.option('--all', 'include_replayed', is_flag=True, default=False, help='Include replayed events')
@click.option('--limit', default=50, show_default=True, type=int)
@click.option('--json', 'as_json', is_flag=True, default=False, help='Print full rows, payload included, as JSON')
@with_appcontext
def show_failures(include_replayed, limit, as_json):
    """List dead-lettered events."""
    failures = list_failures(include_replayed=include_replayed, limit=limit)
    if as_json:
        click.echo(json.dumps([f.to_dict() for f in failures], indent=2, default=str))
        return
    if not failures:
        click.echo("No failed events")
        return
    for f in failures:
        click.echo(
            f"{f.process_id}  {f.event_type:<24} {f.status:<9} attempts={f.attempts}  {f.error}"
        )


@events_group.command('replay')
@click.argument('process_id')
@with_appcontext
def replay(process_id):
    """Re-apply a failed event by its process id."""
    try:
        summary = replay_failure(process_id)
    except ReplayError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Replayed {process_id}: {json.dumps(summary, default=str)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(branches_group)
    app.cli.add_command(events_group)
