"""Command-line interface for the filesort package.

Commands are registered with a CommandRegistry and listed in sections by
SectionedGroup. To add a command, define it as a click command and add it
to a group of ``registry`` below.
"""

import click

from filesort import __version__

from . import set_log_verbosity
from .config_cmd import config_cmd
from .run import run
from .sectioned_group import CommandRegistry, SectionedGroup

registry = CommandRegistry()

registry.create_group("service", "Run the file sort service.")
registry.add("service", run)

registry.create_group("configuration", "Create configuration files.")
registry.add("configuration", config_cmd)


@click.group(cls=SectionedGroup, registry=registry, no_args_is_help=True)
@set_log_verbosity()
@click.version_option(
    version=__version__,
    package_name="med-filesort",
    prog_name="filesort",
    message="%(package)s:%(prog)s:%(version)s",
)
@click.help_option("-h", "--help")
def cli(verbose: int, quiet: bool) -> None:
    """Sort incoming medical imaging files into a patient-organized tree."""
    pass


cli.add_registry(registry)

if __name__ == "__main__":
    cli()
