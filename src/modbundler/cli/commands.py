"""
CLI commands for modbundler.

Implements bundling, the conflict dry run and mod listing.
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from modbundler.cli.interactive import InteractiveResolver
from modbundler.core.bundle import Bundler, BundleResult
from modbundler.core.config import BundleConfig
from modbundler.core.conflict_report import RESOLVED, BundleReport
from modbundler.core.deploy import deploy
from modbundler.core.loader import Mod, discover_mods, load_game, load_mod, select_mods
from modbundler.core.records import GameData
from modbundler.core.resolve import PolicyResolver, RecordingResolver, Resolver, ScriptedResolver
from modbundler.utils.logging import setup_logging


def input_options(func):
    """Options shared by every command that loads the game and mods."""
    options = [
        click.option("--config", "config_file", type=click.Path(exists=True, path_type=Path),
                     help="Bundle configuration YAML file"),
        click.option("--game", "game_path", type=click.Path(path_type=Path),
                     help="Game directory (baseline data)"),
        click.option("--mods-dir", "mods_path", type=click.Path(path_type=Path),
                     help="Directory containing mod folders"),
        click.option("--mod", "mods", multiple=True,
                     help="Title of a mod to include (repeatable; default: all mods)"),
        click.option("--strategy", type=click.Choice(["interactive", "last", "first", "scripted"]),
                     help="Conflict resolution strategy"),
        click.option("--resolutions", type=click.Path(exists=True, path_type=Path),
                     help="Scripted resolutions YAML file"),
        click.option("-v", "--verbose", is_flag=True, help="Verbose output"),
        click.option("--debug", is_flag=True, help="Debug output"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(config_file: Optional[Path], **overrides) -> BundleConfig:
    config = BundleConfig.load(str(config_file)) if config_file else BundleConfig()
    if overrides.get("resolutions") is not None and overrides.get("strategy") is None:
        overrides["strategy"] = "scripted"
    return config.override(**overrides)


def _make_resolver(config: BundleConfig, console: Console) -> Resolver:
    if config.strategy == "interactive":
        return InteractiveResolver(console)
    if config.strategy == "scripted":
        return ScriptedResolver.from_file(config.resolutions)
    return PolicyResolver(config.strategy)


def _load_all(console: Console, config: BundleConfig) -> Tuple[GameData, Dict[str, GameData], List[Mod]]:
    """Load the baseline and every selected mod, with a progress spinner."""
    mods = select_mods(discover_mods(config.mods_path), config.mods)
    if not mods:
        raise ValueError(f"No mods found in {config.mods_path}")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Loading vanilla game data...", total=None)

        def on_load(rel_path: str) -> None:
            progress.update(task, description=f"Reading {rel_path}")

        game = load_game(config.game_path, on_load)
        loaded = {}
        for mod in mods:
            progress.update(task, description=f"Loading mod {mod.name}...")
            loaded[mod.name] = load_mod(mod, on_load)

    console.print(f"Loaded {len(game)} game files and {len(mods)} mod(s)")
    return game, loaded, mods


def _display_errors(console: Console, result: BundleResult) -> None:
    table = Table(title="Files That Could Not Be Merged", show_header=True, header_style="bold red")
    table.add_column("File", style="cyan", overflow="fold")
    table.add_column("Error", style="red", overflow="fold")
    for path, error in sorted(result.errors.items()):
        table.add_row(path, str(error))
    console.print(table)


def _show_summary(console: Console, report: BundleReport, mods: List[Mod]) -> None:
    """Show decision statistics for the bundle."""
    summary = report.get_summary_report()
    table = Table(title="Bundle Statistics")
    table.add_column("Action", style="cyan")
    table.add_column("Count", style="green", justify="right")
    for action_type, count in sorted(summary["statistics"]["by_action_type"].items()):
        table.add_row(action_type, str(count))
    console.print(table)
    console.print(f"Mods: {', '.join(mod.name for mod in mods)}")
    if summary["files_with_conflicts"]:
        console.print(f"Files with conflicts: {len(summary['files_with_conflicts'])}")
    reviewed = report.filter_entries(action_type=RESOLVED, manual_review_only=True)
    if reviewed:
        console.print(f"Decisions taken by the resolver: {len(reviewed)}")
        for entry in reviewed:
            console.print(f"  {entry['file']}: {entry['path']} = {entry['value']}", markup=False)


@click.command()
@input_options
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Output mod directory")
@click.option("--report", type=click.Path(path_type=Path), help="Write a JSON or CSV decision report")
@click.option("--overwrite", is_flag=True, help="Replace the output directory if it exists")
@click.option("--skip-failed", is_flag=True, help="Deploy even if some files failed to merge")
@click.option("--summary", is_flag=True, help="Show bundle summary")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path),
              help="Write a DEBUG trace of the run to this file")
def bundle(
    config_file: Optional[Path],
    game_path: Optional[Path],
    mods_path: Optional[Path],
    mods: Tuple[str, ...],
    strategy: Optional[str],
    resolutions: Optional[Path],
    verbose: bool,
    debug: bool,
    output: Optional[Path],
    report: Optional[Path],
    overwrite: bool,
    skip_failed: bool,
    summary: bool,
    log_file: Optional[Path],
):
    """
    Bundle the selected mods into a single mod.

    Loads the game and every mod, merges the changes, asks the resolver about
    conflicts and deploys the result to the output directory.
    """
    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"
    logger = setup_logging(log_level, log_file)
    console = Console()

    try:
        config = _build_config(
            config_file, game_path=game_path, mods_path=mods_path, mods=mods,
            strategy=strategy, resolutions=resolutions, output=output, report=report,
        )
        config.validate()

        game, loaded, selected = _load_all(console, config)
        resolver = _make_resolver(config, console)
        result = Bundler(resolver).bundle(game, loaded)

        if config.report:
            result.report.export(str(config.report))
            logger.info(f"Report written to {config.report}")

        if result.errors:
            _display_errors(console, result)
            if not skip_failed:
                raise ValueError(
                    f"{len(result.errors)} file(s) failed to merge; use --skip-failed to deploy the rest"
                )

        count = deploy(config.output, result.files, overwrite=overwrite)

        logger.info("Bundle deployed successfully")
        console.print(
            Panel.fit(
                f"[bold green]Bundle ready![/bold green]\n"
                f"{len(selected)} mod(s) merged into {count} file(s)\n"
                f"Deployed to {config.output}",
                title="modbundler",
                border_style="green",
            )
        )

        if summary:
            _show_summary(console, result.report, selected)

    except Exception as e:
        logger.error(f"Error: {e}")
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()


@click.command()
@input_options
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default="resolutions.yaml",
    help="Output file for the resolutions template (default: resolutions.yaml)",
)
def conflicts(
    config_file: Optional[Path],
    game_path: Optional[Path],
    mods_path: Optional[Path],
    mods: Tuple[str, ...],
    strategy: Optional[str],
    resolutions: Optional[Path],
    verbose: bool,
    debug: bool,
    output: Path,
):
    """
    List every conflict without deploying anything.

    Writes a resolutions template answering each conflict with the
    alphabetically last mod's option; edit it and pass it to
    ``bundle --resolutions``.
    """
    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"
    logger = setup_logging(log_level)
    console = Console()

    try:
        config = _build_config(
            config_file, game_path=game_path, mods_path=mods_path, mods=mods,
        )
        config.validate(require_output=False)

        game, loaded, _ = _load_all(console, config)
        recorder = RecordingResolver(PolicyResolver("last"))
        result = Bundler(recorder).bundle(game, loaded)

        table = Table(title="Pending Decisions", show_header=True, header_style="bold cyan")
        table.add_column("File", style="cyan", overflow="fold")
        table.add_column("Path", style="yellow", overflow="fold")
        table.add_column("Options", style="magenta", overflow="fold")
        for file_path, (sources, reason) in sorted(recorder.choices.items()):
            table.add_row(file_path, f"[dim]{reason}[/dim]", ", ".join(sources))
        for file_path, groups in sorted(recorder.sequences.items()):
            for group in groups:
                table.add_row(file_path, group.title, ", ".join(group.options))
        for file_path, file_conflicts in sorted(recorder.conflicts.items()):
            for path, changes in file_conflicts.items():
                table.add_row(
                    file_path,
                    " / ".join(path),
                    "; ".join(f"{source}: {change}" for source, change in changes),
                )
        console.print(table)

        if result.errors:
            _display_errors(console, result)

        if recorder.pending:
            recorder.write_template(output)
            console.print(f"[bold green]✓ Wrote {recorder.pending} decision(s) to {output}[/bold green]")
            console.print("\n[bold blue]Next steps:[/bold blue]")
            console.print(f"1. Review and edit {output}")
            console.print(f"2. Run: modbundler bundle --resolutions {output} ...")
        else:
            console.print("[bold green]No conflicts - the mods merge cleanly[/bold green]")

        logger.info(f"Conflict listing completed: {recorder.pending} pending decisions")

    except Exception as e:
        logger.error(f"Error: {e}")
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()


@click.command("list-mods")
@click.argument("mods_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-v", "--verbose", is_flag=True, help="Verbose output")
@click.option("--debug", is_flag=True, help="Debug output")
def list_mods(mods_dir: Path, verbose: bool, debug: bool):
    """
    List the mods found in MODS_DIR.

    Arguments:
        MODS_DIR: Directory containing mod folders with a project.xml each
    """
    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"
    logger = setup_logging(log_level)
    console = Console()

    try:
        found = discover_mods(mods_dir)
        table = Table(title=f"Mods in {mods_dir}", show_header=True, header_style="bold cyan")
        table.add_column("#", style="dim", width=3)
        table.add_column("Title", style="green")
        table.add_column("Directory", style="cyan", overflow="fold")
        for i, mod in enumerate(found, 1):
            table.add_row(str(i), mod.title, mod.path.name)
        console.print(table)
        logger.info(f"Found {len(found)} mods")

    except Exception as e:
        logger.error(f"Error: {e}")
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()


@click.group()
def cli():
    """modbundler - merge many game mods into a single conflict-free bundle."""


# Add the commands to the CLI group
cli.add_command(bundle)
cli.add_command(conflicts)
cli.add_command(list_mods)
