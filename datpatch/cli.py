"""
Command line interface for datpatch.

    datpatch backup --from SRC --to DEST (-p | -n | -d) [-s] [--keep-months N]
    datpatch serve [--host HOST] [--port PORT]
"""

import atexit
import os
import sys

import click

from datpatch import create_app
from datpatch.models import BackupMode, BackupOptions
from datpatch.backup.executor import execute_backup, PreconditionError
from datpatch.backup.cache import CacheError


@click.group()
@click.option('--env', 'config_name', default=None,
              help='Configuration name (development, production, testing).')
@click.pass_context
def cli(ctx, config_name):
    """Incremental, calendar-aware backups of a directory tree."""
    ctx.ensure_object(dict)
    ctx.obj['config_name'] = config_name


@cli.command()
@click.option('--from', 'source', required=True, type=click.Path(file_okay=False),
              help='The source directory to back up.')
@click.option('--to', 'destination', required=True, type=click.Path(file_okay=False),
              help='The destination for backup archives and the .cache directory.')
@click.option('-p', '--previous', is_flag=True, help='Backup the previous month.')
@click.option('-n', '--current', is_flag=True, help='Backup the current month.')
@click.option('-d', '--dynamic', is_flag=True,
              help='Backup the current month, plus the previous one during the first week.')
@click.option('-s', '--silent', is_flag=True, help='Suppress console output.')
@click.option('--keep-months', default=6, show_default=True, type=click.IntRange(min=0),
              help='Number of months to keep backups (0 keeps everything).')
@click.pass_context
def backup(ctx, source, destination, previous, current, dynamic, silent, keep_months):
    """Back up files changed since the last run, one archive per month."""
    selected = [
        mode for flag, mode in (
            (previous, BackupMode.PREVIOUS_MONTH),
            (current, BackupMode.CURRENT_MONTH),
            (dynamic, BackupMode.DYNAMIC),
        ) if flag
    ]
    if len(selected) != 1:
        raise click.UsageError('You must specify exactly one of -p, -n, or -d.')

    app = create_app(ctx.obj.get('config_name'))

    options = BackupOptions(
        source=source,
        destination=destination,
        mode=selected[0],
        silent=silent,
        keep_months=keep_months
    )

    with app.app_context():
        try:
            summary = execute_backup(options)
        except (PreconditionError, CacheError) as e:
            # Fatal errors are reported even in silent mode
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    if not silent:
        click.echo(
            f"Backup process completed: {len(summary['archives'])} archives created, "
            f"{len(summary['pruned'])} old backups removed."
        )


@cli.command()
@click.option('--host', default='0.0.0.0', show_default=True)
@click.option('--port', default=lambda: int(os.environ.get('PORT', 5000)), type=int)
@click.pass_context
def serve(ctx, host, port):
    """Serve the history API and run scheduled backups."""
    from datpatch.scheduler import init_scheduler, start_scheduler, stop_scheduler

    app = create_app(ctx.obj.get('config_name'))

    try:
        init_scheduler(app)
    except ValueError as e:
        raise click.ClickException(f"Cannot schedule backups: {e}")

    start_scheduler()
    atexit.register(stop_scheduler)

    # The reloader would start a second scheduler
    app.run(host=host, port=port, use_reloader=False)


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
