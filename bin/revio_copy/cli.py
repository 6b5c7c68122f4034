"""CLI entry point for revio-copy."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from revio_copy import __version__
from revio_copy.config import CopyConfig, load_config, write_config
from revio_copy.errors import RevioCopyError
from revio_copy.metadata import MultiplexPolicy
from revio_copy.models import IdentificationReport, RunView
from revio_copy.pipeline import discover, process_run, require_root
from revio_copy.report import format_report, format_run_details, format_run_line

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="revio-copy",
        description="List PacBio Revio runs and copy HiFi read BAM/PBI files per biosample.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # list
    ls = sub.add_parser("list", help="List runs, newest first")
    ls.add_argument("root", type=Path, nargs="?", default=None,
                    help="Directory containing Revio run folders (default: REVIO_ROOT or config)")
    ls.add_argument("--config", type=Path, default=None, help="TOML config file")
    ls.add_argument("--debug", action="store_true", default=None, help="Enable debug output")

    # process
    proc = sub.add_parser("process", help="Select a run and identify/copy its files")
    proc.add_argument("root", type=Path, nargs="?", default=None,
                      help="Directory containing Revio run folders (default: REVIO_ROOT or config)")
    proc.add_argument("-o", "--output", type=Path, default=None,
                      help="Output directory for processed files")
    proc.add_argument("--run", default=None, help="Specific run name to process")
    proc.add_argument("--debug", action="store_true", default=None, help="Enable debug output")
    proc.add_argument("--dry-run", action="store_true", default=None,
                      help="Identify files without copying")
    proc.add_argument("--policy", choices=[p.value for p in MultiplexPolicy], default=None,
                      help="Multiplex detection policy (default: any)")
    proc.add_argument("--config", type=Path, default=None, help="TOML config file")

    # init-config
    init = sub.add_parser("init-config", help="Write a default TOML config file")
    init.add_argument("path", type=Path, help="Where to write the config")

    # version
    sub.add_parser("version", help="Print the version")

    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def print_runs(runs: list[RunView]) -> None:
    for i, run in enumerate(runs, start=1):
        colour = "yellow" if run.is_pending else "green"
        console.print(f"[{colour}]{escape(format_run_line(i, run))}[/{colour}]")


def prompt_for_selection(runs: list[RunView]) -> int | None:
    """Ask for a run number; returns a zero-based index, or None on 'q'."""
    n = len(runs)
    while True:
        answer = Prompt.ask(f"Select a run by number (1-{n}, or 'q' to quit)", console=console)
        answer = answer.strip()
        if answer.lower() == "q":
            return None
        if answer.isdigit() and 1 <= int(answer) <= n:
            return int(answer) - 1
        console.print(f"Please enter a number between 1 and {n}")


def cmd_list(config: CopyConfig) -> None:
    console.print(f"[italic]Scanning for runs in {require_root(config)}...[/italic]")
    runs = discover(config)
    console.print(f"Found {len(runs)} runs.")
    print_runs(runs)


def cmd_process(config: CopyConfig) -> None:
    def show_runs(runs: list[RunView]) -> None:
        console.print(f"Found {len(runs)} runs.")
        if not config.run_name:
            console.print("[bold]Available runs (sorted by started date, newest first):[/bold]")
            print_runs(runs)

    def show_run(run: RunView) -> None:
        console.print("\n[bold]Run Details:[/bold]")
        console.print(escape(format_run_details(run)))
        if config.output_dir is None:
            console.print("\nUse --output flag to identify files for copying")
        else:
            console.print("\n[italic]Identifying files to copy...[/italic]")

    def confirm(report: IdentificationReport) -> bool:
        console.print(f"\nIdentified {len(report.mappings)} files to copy:\n")
        console.print(escape(format_report(report)))
        if report.missing_count:
            console.print("\n[red]Cannot proceed with copying due to missing source files.[/red]")
        if report.collisions:
            console.print("\n[red]Cannot proceed with copying: several source files "
                          "share a destination.[/red]")
        if not report.ready:
            console.print("Please check the file identification report above.")
            return False
        if config.dry_run:
            console.print("\n[yellow][DRY RUN] Copy operations will be simulated but not executed[/yellow]")
        else:
            console.print("\n[italic]Proceeding with file copying...[/italic]")
        return True

    console.print(f"[italic]Scanning for runs in {require_root(config)}...[/italic]")
    result = process_run(
        config,
        prompt_for_selection,
        on_discovered=show_runs,
        on_selected=show_run,
        confirm=confirm,
    )
    if result.cancelled:
        console.print("Aborted.")
        return

    summary = result.copy_summary
    if summary is None:
        return
    if summary.failed:
        console.print(f"\n[red]{len(summary.failed)} biosample(s) failed to copy.[/red]")
    elif config.dry_run:
        console.print("\n[yellow][DRY RUN] Copy simulation completed successfully.[/yellow]")
        console.print("Run without --dry-run flag to perform actual copying.")
    else:
        console.print("\n[green]All files copied successfully![/green]")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        console.print(f"revio-copy {__version__}")
        return 0

    try:
        if args.command == "init-config":
            path = write_config(args.path)
            console.print(f"Wrote default config to {path}")
            return 0

        if args.command == "list":
            config = load_config(args.config, root=args.root, debug=args.debug)
            configure_logging(config.debug)
            cmd_list(config)
        elif args.command == "process":
            config = load_config(
                args.config,
                root=args.root,
                output_dir=args.output,
                run_name=args.run,
                debug=args.debug,
                dry_run=args.dry_run,
                multiplex_policy=args.policy,
            )
            configure_logging(config.debug)
            cmd_process(config)
    except RevioCopyError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
