import pathlib

import click

from filesort.config import DEFAULT_CONFIG_FILE
from filesort.exceptions import ConfigurationError
from filesort.sort import PathStrategy

from .run import DIR_TYPE, build_settings


@click.command(name="config")
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(dir_okay=False, path_type=pathlib.Path),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Where to write the configuration file.",
)
@click.option(
    "--interactive",
    is_flag=True,
    help="Prompt for the settings instead of reading options.",
)
@click.option("--input-dir", "-i", type=DIR_TYPE, help="Directory watched for incoming files.")
@click.option("--output-dir", type=DIR_TYPE, help="Root of the sorted output tree.")
@click.option("--unknown-dir", "-u", type=DIR_TYPE, help="Directory for files that cannot be sorted.")
@click.option(
    "--path-strategy",
    "-s",
    type=click.Choice(PathStrategy.choices(), case_sensitive=False),
    help="Layout of the output tree.",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file.")
@click.help_option(
    "-h",
    "--help",
)
def config_cmd(
    output_file: pathlib.Path,
    interactive: bool,
    input_dir: pathlib.Path | None,
    output_dir: pathlib.Path | None,
    unknown_dir: pathlib.Path | None,
    path_strategy: str | None,
    force: bool,
) -> None:
    """Write a YAML configuration file for `filesort run`.

    Settings not given are filled in with their defaults.
    """
    if output_file.exists() and not force:
        raise click.ClickException(
            f"{output_file} already exists, use --force to overwrite it"
        )

    values: dict[str, object] = {}
    if interactive:
        values["input_dir"] = click.prompt(
            "Input directory", type=DIR_TYPE, default=input_dir
        )
        values["output_dir"] = click.prompt(
            "Output directory", type=DIR_TYPE, default=output_dir
        )
        values["unknown_dir"] = click.prompt(
            "Unknown data directory", type=DIR_TYPE, default=unknown_dir
        )
        values["path_strategy"] = click.prompt(
            "Path strategy",
            type=click.Choice(PathStrategy.choices()),
            default=path_strategy or PathStrategy.DEFAULT.value,
        )
        values["scan_interval"] = click.prompt(
            "Scan interval (seconds)", type=float, default=0.5
        )
        values["min_idle_time"] = click.prompt(
            "Minimum idle time (seconds)", type=float, default=10.0
        )
    else:
        values.update(
            input_dir=input_dir,
            output_dir=output_dir,
            unknown_dir=unknown_dir,
            path_strategy=path_strategy,
        )

    settings = build_settings(None, **values)
    try:
        settings.to_yaml(output_file)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Configuration written to {output_file}")
