# Overview: Flask CLI command groups for bootstrap, sync operation, and outbox maintenance.

# backend/possync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use "flask db upgrade" for managed schemas).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data, including the outbox).
#
# Sync:
# - python -m flask sync run
#   Run one push+pull cycle now and print the per-type report.
# - python -m flask sync status
#   Show sync state, pending/parked counts, and watermarks.
# - python -m flask sync outbox [--entity products] [--parked]
#   List pending outbox entries.
# - python -m flask sync retry [--entity products]
#   Reset attempt counters so parked entries are pushed again.
# - python -m flask sync reset-watermark --entity products | --all
#   Forget pull progress; the next cycle re-pulls from the beginning.

import sys

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .services import local_store, outbox_service
from .services.entity_registry import UnknownEntityTypeError, entity_types, get_spec
from .services.sync_runtime import SyncNotConfiguredError, get_coordinator
from .services.sync_types import CycleOutcome
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    with local_store.transaction():
        local_store.get_sync_state()
    click.echo("PASS Database initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including changes not yet pushed!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('sync')
def sync_group():
    """Sync operation and outbox maintenance commands."""


def _echo_phase(title, phase):
    click.echo(f"\n{title}")
    click.echo("-" * 80)
    if not phase.types:
        click.echo("  (nothing to do)")
    for entity_type, t in phase.types.items():
        line = (
            f"  {entity_type:<24} pushed={t.pushed:<4} deleted={t.deleted:<4} "
            f"rejected={t.rejected:<4} applied={t.applied:<4} skipped={t.skipped:<4}"
        )
        if t.failed:
            line += f" FAILED: {t.error}"
        click.echo(line)


@sync_group.command('run')
@with_appcontext
def run_sync_cli():
    """
    Run one sync cycle.

    Exit code is 1 when the cycle FAILED, 0 otherwise.
    """
    try:
        coordinator = get_coordinator()
    except SyncNotConfiguredError as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)

    result = coordinator.run_cycle()
    report = result.report
    if report is None:
        click.echo("WARN A cycle is already running; a follow-up was requested.")
        return

    _echo_phase("PUSH", report.push)
    _echo_phase("PULL", report.pull)

    for warning in report.warnings:
        click.echo(f"WARN {warning}")

    click.echo(f"\nOutcome: {report.outcome.value}" + (" (cancelled)" if report.cancelled else ""))
    if report.error:
        click.echo(f"Error: {report.error}")
    if report.outcome == CycleOutcome.FAILED:
        sys.exit(1)


@sync_group.command('status')
@with_appcontext
def sync_status_cli():
    """Show sync state, outbox counts, and per-type watermarks."""
    max_attempts = current_app.config.get("SYNC_MAX_ATTEMPTS", 3)
    with local_store.transaction():
        state = local_store.get_sync_state()
        watermarks = local_store.list_watermarks()
        pending = outbox_service.pending_count()
        parked = len(outbox_service.parked_entries(max_attempts))

        click.echo(f"State:         {state.status}")
        click.echo(f"Last outcome:  {state.last_outcome or '-'}")
        click.echo(f"Last finished: {to_utc_z(state.last_finished_at) if state.last_finished_at else '-'}")
        if state.last_error:
            click.echo(f"Last error:    {state.last_error}")
        click.echo(f"Pending:       {pending} ({parked} parked)")

        click.echo("\n" + "="*80)
        click.echo(f"{'Entity':<24} {'Updated at':<28} {'Last id'}")
        click.echo("="*80)
        for w in watermarks:
            click.echo(f"{w.entity_type:<24} {to_utc_z(w.updated_at):<28} {w.last_id or '-'}")
        click.echo("="*80 + "\n")


@sync_group.command('outbox')
@click.option('--entity', 'entity_type', help='Filter by entity type')
@click.option('--parked', is_flag=True, help='Only entries that reached the attempt limit')
@click.option('--limit', default=50, type=int, help='Maximum entries to show')
@with_appcontext
def list_outbox_cli(entity_type, parked, limit):
    """
    List pending outbox entries.

    Example:
        flask sync outbox
        flask sync outbox --entity products --parked
    """
    with local_store.transaction():
        entries, total = outbox_service.list_entries(
            entity_type=entity_type,
            parked_only=parked,
            max_attempts=current_app.config.get("SYNC_MAX_ATTEMPTS", 3),
            limit=limit,
        )

        if not entries:
            click.echo("No outbox entries found.")
            return

        click.echo("\n" + "="*110)
        click.echo(f"{'Entity':<22} {'Id':<38} {'Op':<8} {'Tries':<6} {'Last error'}")
        click.echo("="*110)
        for e in entries:
            click.echo(
                f"{e.entity_type:<22} {e.entity_id:<38} {e.operation:<8} {e.attempt_count:<6} {e.last_error or '-'}"
            )
        click.echo("="*110)
        click.echo(f"Showing {len(entries)} of {total}\n")


@sync_group.command('retry')
@click.option('--entity', 'entity_type', help='Restrict to one entity type')
@with_appcontext
def retry_outbox_cli(entity_type):
    """Reset attempt counters so parked entries are pushed again."""
    try:
        with local_store.transaction():
            count = outbox_service.reset_attempts(entity_type)
    except UnknownEntityTypeError as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)
    click.echo(f"PASS Reset {count} outbox entries.")


@sync_group.command('reset-watermark')
@click.option('--entity', 'entity_type', help='Entity type to re-pull')
@click.option('--all', 'reset_all', is_flag=True, help='Reset every entity type')
@with_appcontext
def reset_watermark_cli(entity_type, reset_all):
    """Forget pull progress so the next cycle re-fetches from the beginning."""
    if not entity_type and not reset_all:
        click.echo("FAIL Pass --entity <type> or --all")
        sys.exit(1)

    try:
        targets = entity_types() if reset_all else [get_spec(entity_type).entity_type]
    except UnknownEntityTypeError as e:
        click.echo(f"FAIL {e}")
        sys.exit(1)

    with local_store.transaction():
        reset = [t for t in targets if local_store.reset_watermark(t)]
    click.echo(f"PASS Reset watermarks: {', '.join(reset) if reset else 'none stored'}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sync_group)
