"""
Interactive console resolver.

Every conflict is shown as a table of the competing options; the user picks
one by number, or types ``=value`` to enter a value of their own.
"""

from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from modbundler.core.diff import Conflicts, DataMap, Patch, format_path
from modbundler.core.errors import ResolutionAborted
from modbundler.core.resolve import (
    REMOVED_MARKER,
    LevelValues,
    Resolver,
    SequenceConflict,
    value_from_answer,
)


def _format_level_value(value) -> str:
    if value is None:
        return REMOVED_MARKER
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


class InteractiveResolver(Resolver):
    """Asks the user on the console for every decision."""

    def __init__(self, console: Console = None) -> None:
        self.console = console or Console()

    def _ask(self, prompt: str) -> str:
        try:
            return self.console.input(f"[bold]{prompt}[/bold] ").strip()
        except (EOFError, KeyboardInterrupt):
            self.console.print("\n[yellow]Input closed - aborting the bundle[/yellow]")
            raise ResolutionAborted("Interactive resolution was interrupted")

    def _choose_index(self, prompt: str, count: int, allow_custom: bool = False) -> str:
        """Ask until the answer is a valid option number (or ``=value`` if allowed)."""
        while True:
            answer = self._ask(prompt)
            if allow_custom and answer.startswith("="):
                return answer
            if answer.isdigit() and 1 <= int(answer) <= count:
                return answer
            self.console.print(f"[yellow]Enter a number between 1 and {count}[/yellow]")

    def resolve(self, file_path: str, conflicts: Conflicts, original: DataMap) -> Patch:
        self.console.print(Panel.fit(
            f"[bold yellow]{file_path}[/bold yellow]\n"
            f"{len(conflicts)} conflicting value(s)",
            border_style="yellow"
        ))
        resolved: Patch = {}
        for path, changes in conflicts.items():
            base = original.get(path)
            table = Table(title=format_path(path), show_header=True, header_style="bold cyan")
            table.add_column("#", style="dim", width=3)
            table.add_column("Source", style="cyan")
            table.add_column("Value", style="green", overflow="fold")
            table.add_row("", "[dim]game[/dim]", str(base) if base is not None else "[dim]<absent>[/dim]")
            for i, (source, change) in enumerate(changes, 1):
                table.add_row(str(i), source, str(change))
            self.console.print(table)

            template = base
            if template is None:
                template = next((change.value for _, change in changes if not change.is_removed), None)
            while path not in resolved:
                answer = self._choose_index(
                    "Your choice (number, or =value):", len(changes), allow_custom=True
                )
                if not answer.startswith("="):
                    resolved[path] = changes[int(answer) - 1][1]
                    continue
                try:
                    resolved[path] = value_from_answer(answer[1:], template)
                except ValueError as e:
                    self.console.print(f"[red]Invalid value: {e}[/red]")
        return resolved

    def resolve_sequence(self, file_path: str, conflict: SequenceConflict) -> LevelValues:
        sources = list(conflict.options)
        table = Table(
            title=f"{file_path}: {conflict.title}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("#", style="dim", width=3)
        table.add_column("Source", style="cyan")
        for level in conflict.levels:
            table.add_column(f"Level {level}", overflow="fold")
        table.add_row("", "[dim]game[/dim]", *[
            _format_level_value(conflict.original.get(level)) for level in conflict.levels
        ])
        for i, source in enumerate(sources, 1):
            option = conflict.options[source]
            table.add_row(str(i), source, *[
                _format_level_value(option.get(level)) for level in conflict.levels
            ])
        self.console.print(table)

        answer = self._choose_index("Take all levels from:", len(sources))
        return dict(conflict.options[sources[int(answer) - 1]])

    def choose_source(self, file_path: str, sources: List[str], reason: str) -> str:
        self.console.print(f"\n[bold yellow]{file_path}[/bold yellow]: {reason}")
        for i, source in enumerate(sources, 1):
            self.console.print(f"  [cyan]{i}[/cyan] - {source}")
        answer = self._choose_index("Use the file from:", len(sources))
        return sources[int(answer) - 1]
