"""Command-line interface for the engineering stats engine."""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import pandas as pd

from .config import EngineConfig, parse_config_date
from .logging import get_logger, setup_logging
from .service import StatsService

logger = get_logger(__name__)


class CLIContext:
    """Shared context for CLI commands."""

    def __init__(self, config: EngineConfig):
        self.config = config
        self.service = StatsService(config=config)


@click.group()
@click.option(
    '--log-level',
    default='WARNING',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
    help='Logging verbosity',
    envvar='ENG_STATS_LOG_LEVEL'
)
@click.option(
    '--default-start',
    help='Start of the default date window (YYYY-MM-DD)',
    envvar='ENG_STATS_DEFAULT_START'
)
@click.pass_context
def cli(ctx, log_level: str, default_start: Optional[str]):
    """Engineering statistics and sprint velocity from exported provider data."""
    setup_logging(level=log_level)

    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        click.echo(f"✗ Error loading configuration: {e}", err=True)
        sys.exit(1)

    if default_start:
        try:
            config.default_start = parse_config_date(default_start)
        except ValueError:
            raise click.BadParameter(
                f"{default_start!r} is not an ISO date such as 2025-07-01", param_hint="'--default-start'"
            )
    ctx.obj = CLIContext(config)


def date_range_options(command):
    """Attach the shared --since/--until/--all-time options to a command."""
    command = click.option('--all-time', is_flag=True, help='Ignore dates entirely')(command)
    command = click.option('--until', help='End date (YYYY-MM-DD), inclusive')(command)
    command = click.option('--since', help='Start date (YYYY-MM-DD)')(command)
    return command


def build_date_range(since: Optional[str], until: Optional[str], all_time: bool) -> Optional[Dict[str, Any]]:
    """Translate the date options into a range request."""
    if all_time:
        if since or until:
            raise click.UsageError('--all-time cannot be combined with --since/--until')
        return {'start': None, 'end': None}
    if since or until:
        return {'start': since, 'end': until}
    return None


def load_json_array(path: str) -> List[Any]:
    """Read a JSON file that must contain an array of records."""
    with open(path, encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array, got {type(data).__name__}")
    return data


def _echo_json(result: Dict[str, Any]) -> None:
    click.echo(json.dumps(result, indent=2, default=str))


def _echo_monthly(title: str, monthly: List[Dict[str, Any]]) -> None:
    if not monthly:
        return
    click.echo(f"\n{title}")
    click.echo(pd.DataFrame(monthly).to_string(index=False))


@cli.command('item-stats')
@click.option('--provider', required=True, type=click.Choice(['github', 'gitlab', 'jira']), help='Record format')
@click.option('--input', 'input_path', required=True, type=click.Path(exists=True), help='JSON array of items')
@click.option('--comments', 'comments_path', type=click.Path(exists=True), help='JSON array of comments')
@date_range_options
@click.option('--output-format', type=click.Choice(['json', 'table']), default='table')
@click.pass_context
def item_stats(ctx, provider: str, input_path: str, comments_path: Optional[str],
               since: Optional[str], until: Optional[str], all_time: bool, output_format: str):
    """Calculate PR/MR/issue statistics."""
    try:
        date_range = build_date_range(since, until, all_time)
        items = load_json_array(input_path)
        comments = load_json_array(comments_path) if comments_path else []

        result = ctx.obj.service.item_stats(
            provider, items, comments=comments, date_range=date_range, source=str(Path(input_path).resolve())
        )

        if output_format == 'json':
            _echo_json(result)
            return

        summary = pd.DataFrame([{
            'Total': result['total'],
            'Merged': result['merged'],
            'Open': result['open'],
            'Closed': result['closed'],
            'Last 30d': result['last30Days'],
            'Last 90d': result['last90Days'],
            'Avg Days to Merge': result['avgTimeToMerge'],
            'Avg / Month': result['avgPerMonth'],
        }])
        click.echo(f"\n{provider.capitalize()} Statistics ({result['dateRange']['start']} to {result['dateRange']['end']})")
        click.echo("=" * 80)
        click.echo(summary.to_string(index=False))

        if result['grouped']:
            grouped = pd.DataFrame(
                [{'Group': key, **value} for key, value in result['grouped'].items()]
            )
            click.echo("\nBy Group")
            click.echo(grouped.to_string(index=False))

        _echo_monthly("Monthly", result['monthlyItems'])

    except click.UsageError:
        raise
    except Exception as e:
        click.echo(f"✗ Error calculating item statistics: {e}", err=True)
        sys.exit(1)


def _sprint_rows(sprints: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            'Board': sprint['boardName'],
            'Sprint': sprint['name'],
            'Start': (sprint['startDate'] or '')[:10],
            'End': (sprint['endDate'] or '')[:10],
            'Points': sprint['points'],
            'Issues': sprint['issueCount'],
        }
        for sprint in sprints
    ]


def _echo_velocity(velocity: Dict[str, Any]) -> None:
    if not velocity['sprints']:
        click.echo("No sprints with complete dates in the selected range")
    else:
        click.echo(pd.DataFrame(_sprint_rows(velocity['sprints'])).to_string(index=False))

    click.echo(f"\nAverage velocity: {velocity['averageVelocity']} points per sprint group")
    click.echo(f"Sprint groups: {len(velocity['groups'])}, sprints: {velocity['totalSprints']}")
    if velocity['issuesWithoutSprint']:
        click.echo(f"Issues without a dated sprint: {velocity['issuesWithoutSprint']}")
    for board, stats in velocity['byBoard'].items():
        click.echo(f"  {board}: {stats['averageVelocity']} avg over {stats['totalSprints']} sprints")


@cli.command()
@click.option('--input', 'input_path', required=True, type=click.Path(exists=True), help='JSON array of Jira issues')
@date_range_options
@click.option('--output-format', type=click.Choice(['json', 'table']), default='table')
@click.pass_context
def velocity(ctx, input_path: str, since: Optional[str], until: Optional[str], all_time: bool, output_format: str):
    """Calculate sprint velocity from Jira issues."""
    try:
        date_range = build_date_range(since, until, all_time)
        issues = load_json_array(input_path)

        result = ctx.obj.service.velocity(issues, date_range=date_range, source=str(Path(input_path).resolve()))

        if output_format == 'json':
            _echo_json(result)
            return

        click.echo("\nSprint Velocity")
        click.echo("=" * 80)
        _echo_velocity(result)

    except click.UsageError:
        raise
    except Exception as e:
        click.echo(f"✗ Error calculating velocity: {e}", err=True)
        sys.exit(1)


@cli.command('jira-stats')
@click.option('--input', 'input_path', required=True, type=click.Path(exists=True), help='JSON array of Jira issues')
@date_range_options
@click.option('--output-format', type=click.Choice(['json', 'table']), default='table')
@click.pass_context
def jira_stats(ctx, input_path: str, since: Optional[str], until: Optional[str], all_time: bool, output_format: str):
    """Calculate Jira issue statistics, cycle time and velocity."""
    try:
        date_range = build_date_range(since, until, all_time)
        issues = load_json_array(input_path)

        result = ctx.obj.service.jira_stats(issues, date_range=date_range, source=str(Path(input_path).resolve()))

        if output_format == 'json':
            _echo_json(result)
            return

        summary = pd.DataFrame([{
            'Total': result['total'],
            'Resolved': result['resolved'],
            'In Progress': result['inProgress'],
            'Done': result['done'],
            'Story Points': result['totalStoryPoints'],
            'Avg Resolution (d)': result['avgResolutionTime'],
            'Avg / Month': result['avgIssuesPerMonth'],
        }])
        click.echo("\nJira Statistics")
        click.echo("=" * 80)
        click.echo(summary.to_string(index=False))

        cycle_time = result['cycleTime']
        click.echo("\nCycle Time by Priority (days):")
        for priority in ('P1', 'P2', 'P3', 'P4'):
            value = cycle_time[priority]
            click.echo(f"  {priority}: {value if value is not None else 'N/A'} ({cycle_time['counts'][priority]} issues)")

        if result['byProject']:
            projects = pd.DataFrame(
                [{'Project': key, **value} for key, value in result['byProject'].items()]
            )
            click.echo("\nBy Project")
            click.echo(projects.to_string(index=False))

        _echo_monthly("Monthly (by last update)", result['monthlyIssues'])

        click.echo("\nSprint Velocity")
        _echo_velocity(result['velocity'])

    except click.UsageError:
        raise
    except Exception as e:
        click.echo(f"✗ Error calculating Jira statistics: {e}", err=True)
        sys.exit(1)


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == '__main__':
    main()
