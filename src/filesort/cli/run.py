import pathlib

import click
from rich.console import Console
from rich.table import Table

from filesort.config import SortServiceSettings
from filesort.exceptions import ConfigurationError
from filesort.loggers import logger
from filesort.service import SortService
from filesort.sort import CycleReport, PathStrategy

DIR_TYPE = click.Path(file_okay=False, dir_okay=True, path_type=pathlib.Path)


def build_settings(config: pathlib.Path | None, **overrides: object) -> SortServiceSettings:
    """Settings from ``config`` (or the default sources) plus CLI overrides.

    Options left unset on the command line do not override anything.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        if config is not None:
            return SortServiceSettings.from_yaml(config, **values)
        return SortServiceSettings.load(**values)
    except ConfigurationError as e:
        logger.error("Invalid configuration", error=str(e))
        raise click.ClickException(str(e)) from e


def render_report(report: CycleReport, console: Console) -> None:
    table = Table(title=f"Cycle {report.cycle}", box=None)
    table.add_column("Source", justify="left", style="cyan", overflow="fold")
    table.add_column("Outcome", style="magenta", no_wrap=True, min_width=14)
    table.add_column("Detail", overflow="fold")
    for record in report.outcomes:
        outcome = record.outcome
        detail = getattr(outcome, "final_path", None) or getattr(outcome, "reason", "")
        table.add_row(str(record.source), type(outcome).__name__, str(detail))
    console.print(table)

    summary = Table(box=None, show_header=False)
    summary.add_column("Counter", style="cyan")
    summary.add_column("Value", justify="right")
    for key, value in report.summary().items():
        summary.add_row(key, str(value))
    console.print(summary)


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=pathlib.Path),
    help="YAML configuration file. Defaults to ./filesort.yaml if present.",
)
@click.option("--input-dir", "-i", type=DIR_TYPE, help="Directory watched for incoming files.")
@click.option("--output-dir", "-o", type=DIR_TYPE, help="Root of the sorted output tree.")
@click.option("--unknown-dir", "-u", type=DIR_TYPE, help="Directory for files that cannot be sorted.")
@click.option(
    "--path-strategy",
    "-s",
    type=click.Choice(PathStrategy.choices(), case_sensitive=False),
    help="Layout of the output tree.",
)
@click.option("--scan-interval", type=float, help="Seconds between two scans.")
@click.option(
    "--min-idle-time",
    type=float,
    help="Seconds a file must be unmodified before it is sorted. 0 disables the check.",
)
@click.option(
    "--once",
    is_flag=True,
    help="Run a single cycle, print a summary and exit.",
)
@click.help_option(
    "-h",
    "--help",
)
def run(
    config: pathlib.Path | None,
    input_dir: pathlib.Path | None,
    output_dir: pathlib.Path | None,
    unknown_dir: pathlib.Path | None,
    path_strategy: str | None,
    scan_interval: float | None,
    min_idle_time: float | None,
    once: bool,
) -> None:
    """Sort incoming files until interrupted.

    The input directory is scanned every scan interval. Files that have not
    changed for the minimum idle time are moved into the output tree, files
    that cannot be sorted into the unknown directory. Ctrl+C or SIGTERM
    stops the service after the file currently being moved.
    """
    settings = build_settings(
        config,
        input_dir=input_dir,
        output_dir=output_dir,
        unknown_dir=unknown_dir,
        path_strategy=path_strategy,
        scan_interval=scan_interval,
        min_idle_time=min_idle_time,
    )
    service = SortService(settings)
    try:
        if once:
            report = service.run_once()
            render_report(report, Console())
        else:
            service.run_forever()
    except ConfigurationError as e:
        logger.error("Sort service failed to start", error=str(e))
        raise click.ClickException(str(e)) from e
