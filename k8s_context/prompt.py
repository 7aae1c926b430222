"""Interactive selection and table output for contexts and kubeconfig files."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from k8s_context.merger import ContextInfo

logger = logging.getLogger(__name__)
console = Console(stderr=True)


def display_contexts(infos: list[ContextInfo], out: Optional[Console] = None) -> None:
    """
    Display contexts in a table format.

    Args:
        infos: Resolved contexts, in display order
        out: Console to print to (stdout when omitted)
    """
    out = out or Console()
    if not infos:
        out.print("[yellow]No available contexts![/yellow]")
        return

    table = Table(title="Available Kubernetes Contexts", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Context", style="green")
    table.add_column("Cluster")
    table.add_column("Server")
    table.add_column("User")
    table.add_column("Namespace")
    table.add_column("Current", justify="center", width=8)

    for idx, info in enumerate(infos, 1):
        name_style = "bold green" if info.current else "white"
        table.add_row(
            str(idx),
            f"[{name_style}]{info.name}[/{name_style}]",
            info.cluster,
            info.server,
            info.user,
            info.namespace,
            "[bold green]*[/bold green]" if info.current else "",
        )

    out.print(table)


def display_files(paths: list[Path]) -> None:
    table = Table(title="Kubeconfig Files", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("File", style="green")
    for idx, path in enumerate(paths, 1):
        table.add_row(str(idx), str(path))
    console.print(table)


def validate_selection(selection: str, options: list[str]) -> Optional[str]:
    """
    Match user input against the options.

    Accepts a 1-based number, an exact or case-insensitive name, or a
    substring that matches exactly one option.
    """
    selection = selection.strip()
    if not selection:
        return None

    if selection.isdigit():
        idx = int(selection)
        if 1 <= idx <= len(options):
            return options[idx - 1]

    for option in options:
        if option == selection:
            return option
    for option in options:
        if option.lower() == selection.lower():
            return option

    matches = [o for o in options if selection.lower() in o.lower()]
    if len(matches) == 1:
        return matches[0]

    return None


def ask(options: list[str], label: str) -> Optional[str]:
    """Prompt until one option is chosen. Returns None if cancelled."""
    while True:
        try:
            console.print(
                f"\n[cyan]Select a {label} by number or name[/cyan]",
                highlight=False,
            )
            console.print("[dim]Enter [/dim][bold green]'q'[/bold green][dim] to quit[/dim]\n")

            print("Selection: ", end="", file=sys.stderr, flush=True)
            raw_input = input().strip()

            if not raw_input:
                console.print("[yellow]No selection made.[/yellow]")
                return None

            if raw_input.lower() in ("q", "quit", "exit"):
                logger.info("User cancelled selection")
                return None

            choice = validate_selection(raw_input, options)
            if choice is not None:
                return choice

            console.print(f"[red]Invalid selection: {raw_input}[/red]")

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled.[/yellow]")
            return None
        except EOFError:
            return None


def prompt_for_context(infos: list[ContextInfo]) -> Optional[str]:
    if not infos:
        return None
    display_contexts(infos, console)
    return ask([info.name for info in infos], "context")


def prompt_for_file(paths: list[Path]) -> Optional[Path]:
    if not paths:
        return None
    display_files(paths)
    choice = ask([str(path) for path in paths], "kubeconfig file")
    if choice is None:
        return None
    return Path(choice)
