"""Command-line interface for battle log tools."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import click

from .anonymizer import AnonymizingHandler
from .directory import EngineConfig, LogHandler, ParallelDirectoryEngine, RunStats
from .errors import BattleToolsError
from .search import BattleSearcher
from .statistics import StatisticsAggregator


@dataclass
class CliOptions:
    """Options shared by every subcommand."""
    engine: EngineConfig
    error_report: Optional[Path] = None


directories_argument = click.argument(
    "directories",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


def _run(options: CliOptions, handler: LogHandler, directories: Tuple[Path, ...]) -> RunStats:
    """Run a handler over the directories and report the outcome."""
    engine = ParallelDirectoryEngine(handler, options.engine)
    try:
        stats = engine.process(directories)
    except BattleToolsError as e:
        raise click.ClickException(str(e)) from e

    stats.print_summary()
    if options.error_report is not None and stats.errors.issues:
        stats.errors.write_report(options.error_report)
        click.echo(f"\nError report written to: {options.error_report}", err=True)

    if not stats.successful:
        raise click.ClickException("No battle logs were processed successfully")
    return stats


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--exclude",
    default=None,
    help="Filenames and directories including this string will be ignored",
)
@click.option(
    "--threads", "-j",
    type=click.IntRange(min=1),
    default=None,
    help="The maximum number of threads to use for concurrent processing",
)
@click.option(
    "--error-report",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write failed files and reasons to this JSONL file",
)
@click.pass_context
def cli(ctx: click.Context, exclude: Optional[str], threads: Optional[int], error_report: Optional[Path]):
    """Tools for Pokémon Showdown battle logs.

    Computes win-rate statistics, searches for a user's battles, and
    anonymizes logs for redistribution.
    """
    ctx.obj = CliOptions(
        engine=EngineConfig(max_workers=threads, exclude=exclude),
        error_report=error_report,
    )


@cli.command()
@directories_argument
@click.option(
    "--csv",
    "csv_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="A path to a file to which statistics will be written in CSV format",
)
@click.option(
    "--human-readable", "--pretty",
    "human_readable_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="A path to a file to which statistics will be written in human-readable (table) format",
)
@click.option(
    "--minimum-elo", "--elo",
    "minimum_elo",
    type=float,
    default=None,
    help="Battles in which either player is below this ELO rating will be ignored",
)
@click.pass_obj
def statistics(
    options: CliOptions,
    directories: Tuple[Path, ...],
    csv_path: Optional[Path],
    human_readable_path: Optional[Path],
    minimum_elo: Optional[float],
):
    """Calculate win rates per format and species.

    Example:
        battle-tools statistics logs/2021-09 --minimum-elo 1300 --csv stats.csv
    """
    aggregator = StatisticsAggregator(minimum_elo=minimum_elo)
    _run(options, aggregator, directories)

    outputs = [
        (csv_path, aggregator.to_csv),
        (human_readable_path, aggregator.to_human_readable),
    ]
    produced_output = False
    for path, render in outputs:
        if path is None:
            continue
        try:
            path.write_text(render(), encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"Cannot write {path}: {e.strerror or e}") from e
        produced_output = True

    # Without output files, pretty-print to stdout
    if not produced_output:
        click.echo(aggregator.to_human_readable())


@cli.command()
@click.argument("username")
@directories_argument
@click.option(
    "--wins-only", "-w",
    is_flag=True,
    help="Search only for battles that were won by the username you're searching for",
)
@click.option(
    "--forfeits-only", "-f",
    is_flag=True,
    help="Search only for battles that ended by forfeit",
)
@click.pass_obj
def search(
    options: CliOptions,
    username: str,
    directories: Tuple[Path, ...],
    wins_only: bool,
    forfeits_only: bool,
):
    """Search for battles played by USERNAME.

    Example:
        battle-tools search Annika logs/2021-09 --wins-only
    """
    try:
        searcher = BattleSearcher(username, wins_only=wins_only, forfeits_only=forfeits_only)
    except BattleToolsError as e:
        raise click.BadParameter(str(e), param_hint="USERNAME") from e
    _run(options, searcher, directories)
    click.echo(f"Matching battles:   {searcher.matches}", err=True)


@cli.command()
@directories_argument
@click.option(
    "--output", "-o",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="The directory to write all anonymized battle logs to",
)
@click.option(
    "--safe",
    is_flag=True,
    help="Also redact timestamps and rating numbers",
)
@click.pass_obj
def anonymize(options: CliOptions, directories: Tuple[Path, ...], output_dir: Path, safe: bool):
    """Anonymize battle logs.

    Every user gets a random pseudonym, different in each battle. Output
    files are named <battle number>.log.json.

    Example:
        battle-tools anonymize logs/2021-09 -o anonymized --safe
    """
    try:
        handler = AnonymizingHandler(output_dir, is_safe=safe)
    except BattleToolsError as e:
        raise click.ClickException(str(e)) from e
    _run(options, handler, directories)


cli.add_command(statistics, name="stats")
cli.add_command(statistics, name="winrates")
cli.add_command(search, name="s")


def main():
    cli()


if __name__ == "__main__":
    main()
