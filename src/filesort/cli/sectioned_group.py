from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from click import Command, Group

if TYPE_CHECKING:
    from click import Context, HelpFormatter


@dataclass
class CommandGroup:
    """A named section of related commands in the CLI help output."""

    name: str
    description: Optional[str] = None
    commands: list[Command] = field(default_factory=list)


@dataclass
class CommandRegistry:
    """Registry mapping section name to command groups.

    Examples
    --------
    >>> registry = CommandRegistry()
    >>> registry.create_group("service", "Run the sort service")
    >>> registry.add("service", run)
    """

    _groups: dict[str, CommandGroup] = field(default_factory=dict)

    def create_group(self, name: str, description: Optional[str] = None) -> None:
        """Create a new command group.

        Raises
        ------
        ValueError
            If a group with the given name already exists.
        """
        if name in self._groups:
            raise ValueError(f"Group '{name}' already exists")
        self._groups[name] = CommandGroup(name=name, description=description)

    def add(self, group: str, cmd: Command) -> None:
        """Add a command to an existing group.

        Raises
        ------
        ValueError
            If the group does not exist.
        """
        if group not in self._groups:
            raise ValueError(
                f"Group '{group}' does not exist. Create it first using create_group()"
            )
        self._groups[group].commands.append(cmd)

    def groups(self) -> dict[str, CommandGroup]:
        return self._groups


class SectionedGroup(Group):
    """A click Group that lists its subcommands in sections.

    Use it as the ``cls`` of a click group and register the commands with
    :meth:`add_registry`.
    """

    def __init__(self, *args, registry: CommandRegistry | None = None, **kwargs):  # type: ignore
        super().__init__(*args, **kwargs)
        self._registry = registry or CommandRegistry()

    def add_registry(self, registry: CommandRegistry) -> None:
        """Assign a registry and add all of its commands to this group."""
        self._registry = registry
        for group in registry.groups().values():
            for cmd in group.commands:
                self.add_command(cmd)

    def format_commands(self, ctx: Context, formatter: HelpFormatter) -> None:
        if not self._registry.groups():
            return

        formatter.write_paragraph()
        formatter.write(f"{'':>{formatter.current_indent}}AVAILABLE COMMANDS:\n")

        for group in self._registry.groups().values():
            if not group.commands:
                continue
            rows = []
            limit = formatter.width - 6 - max(
                len(cmd.name) for cmd in group.commands if cmd.name is not None
            )
            for cmd in group.commands:
                if cmd.name is not None:
                    rows.append((cmd.name, cmd.get_short_help_str(limit)))

            if group.description:
                heading = f"[{group.name.upper()}] {group.description}"
            else:
                heading = group.name
            formatter.write_paragraph()
            formatter.write(f"{'':>{formatter.current_indent}}{heading}\n")
            formatter.indent()
            formatter.write_dl(rows)
            formatter.dedent()
