"""Command-line interface for k8s-context."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from k8s_context import __version__
from k8s_context.errors import KubeconfigError
from k8s_context.kubeconfig import (
    Document,
    backup_file,
    dedupe_paths,
    default_kubeconfig_paths,
    get_kube_dir,
    list_kubeconfig_files,
    load_document,
    load_documents,
    save_document,
)
from k8s_context.merger import (
    describe_context,
    describe_contexts,
    list_context_names,
    merge_documents,
    resolve_current_cluster,
    resolve_current_context,
    summarize_contexts,
    switch_context,
)
from k8s_context.prompt import display_contexts, prompt_for_context, prompt_for_file

logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

console = Console(stderr=True, soft_wrap=True)

DEFAULT_MERGED_OUTPUT = "merged-config"


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="k8s-context",
        description="Load, merge and switch Kubernetes contexts",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    load_parser = subparsers.add_parser(
        "load",
        help="Load a kubeconfig file and select its current context",
    )
    load_parser.add_argument("files", nargs="*", help="Kubeconfig files to choose from")
    load_parser.add_argument(
        "--kube-dir",
        help="Directory to scan for config* files when no file is given (default: ~/.kube)",
    )
    load_parser.add_argument("--context", help="Context to switch to without prompting")
    load_parser.set_defaults(func=cmd_load)

    merge_parser = subparsers.add_parser("merge", help="Merge multiple kubeconfig files")
    merge_parser.add_argument(
        "files",
        nargs="*",
        help="Kubeconfig files to merge, later files win (default: $KUBECONFIG or ~/.kube/config)",
    )
    merge_parser.add_argument(
        "-o",
        "--output",
        default=DEFAULT_MERGED_OUTPUT,
        help=f"Path to write the merged kubeconfig (default: {DEFAULT_MERGED_OUTPUT})",
    )
    merge_parser.add_argument(
        "--current-context",
        help="Set current-context in the output (must exist in the merged contexts)",
    )
    merge_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when a merged context references a missing cluster or user",
    )
    merge_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show changes without writing the file",
    )
    merge_parser.add_argument(
        "--no-backup",
        action="store_true",
        help="Do not back up an existing output file before overwriting it",
    )
    merge_parser.set_defaults(func=cmd_merge)

    switch_parser = subparsers.add_parser(
        "switch",
        aliases=["select"],
        help="Switch to a different context",
    )
    switch_parser.add_argument(
        "files",
        nargs="*",
        help="Kubeconfig files to read contexts from (default: $KUBECONFIG or ~/.kube/config)",
    )
    switch_parser.add_argument(
        "--kubeconfig",
        help="Kubeconfig file to update (default: the first input file)",
    )
    switch_parser.add_argument("--context", help="Context to switch to without prompting")
    switch_parser.set_defaults(func=cmd_switch)

    list_parser = subparsers.add_parser("list", help="List all available Kubernetes contexts")
    list_parser.add_argument("files", nargs="*", help="Kubeconfig files to read")
    list_parser.add_argument(
        "--names",
        action="store_true",
        help="Print context names only, one per line",
    )
    list_parser.set_defaults(func=cmd_list)

    current_parser = subparsers.add_parser("current", help="Show the current context")
    current_parser.add_argument("files", nargs="*", help="Kubeconfig files to read")
    current_parser.set_defaults(func=cmd_current)

    return parser.parse_args(argv)


def resolve_inputs(files: list[str]) -> list[Path]:
    if files:
        return dedupe_paths(Path(path) for path in files)
    return dedupe_paths(default_kubeconfig_paths())


def format_names(names: list[str]) -> str:
    return ", ".join(names) if names else "none"


def choose_context(document: Document, name: Optional[str]) -> Optional[str]:
    """Use the given name, or ask for one among the document's contexts."""
    if name:
        return name
    infos = summarize_contexts(document)
    if not infos:
        console.print("[yellow]No available contexts![/yellow]")
        return None
    selected = prompt_for_context(infos)
    if selected is None:
        console.print("No selection made.")
        return None
    info = describe_context(document, selected)
    console.print(f"Cluster server: {info.server}")
    return selected


def switch_and_save(target: Path, name: str, hint: str = "") -> int:
    document = load_document(target)
    switched = switch_context(document, name, hint)
    save_document(switched, target)
    console.print(f"[green]Successfully changed context to:[/green] {name}")
    console.print(f"[dim]Updated {target}[/dim]")
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    if args.files:
        paths = dedupe_paths(Path(path) for path in args.files)
    else:
        kube_dir = Path(args.kube_dir).expanduser() if args.kube_dir else get_kube_dir()
        paths = list_kubeconfig_files(kube_dir)
        if not paths:
            console.print(f"[red]No kubeconfig files found in {kube_dir}[/red]")
            console.print("[dim]Expected files: config*[/dim]")
            return 1

    target = paths[0]
    if len(paths) > 1:
        selected = prompt_for_file(paths)
        if selected is None:
            console.print("No selection made.")
            return 1
        target = selected

    document = load_document(target)
    console.print(f"Loaded kubeconfig file: {target}")

    name = choose_context(document, args.context)
    if name is None:
        return 1
    return switch_and_save(target, name)


def cmd_merge(args: argparse.Namespace) -> int:
    input_paths = resolve_inputs(args.files)
    missing = [path for path in input_paths if not path.is_file()]
    if missing:
        console.print("[red]Missing kubeconfig file(s):[/red]")
        for path in missing:
            console.print(f"  - {path}")
        return 1

    result = merge_documents(load_documents(input_paths), strict=args.strict)
    merged = result.document
    if args.current_context:
        merged = switch_context(merged, args.current_context)

    output_path = Path(args.output).expanduser()

    console.print(f"Output kubeconfig: {output_path}")
    console.print(f"Input configs: {', '.join(str(path) for path in input_paths)}")
    console.print(
        f"Contexts: {len(merged.contexts)} | Clusters: {len(merged.clusters)} "
        f"| Users: {len(merged.users)}"
    )
    console.print(f"Current context: {merged.current_context or 'none'}")

    if result.duplicate_clusters:
        console.print(f"Duplicate clusters (last wins): {format_names(result.duplicate_clusters)}")
    if result.duplicate_users:
        console.print(f"Duplicate users (last wins): {format_names(result.duplicate_users)}")
    if result.duplicate_contexts:
        console.print(f"Duplicate contexts (last wins): {format_names(result.duplicate_contexts)}")

    for context, cluster in sorted(result.dangling.clusters.items()):
        console.print(f"[yellow]Warning: context {context} references missing cluster {cluster}[/yellow]")
    for context, user in sorted(result.dangling.users.items()):
        console.print(f"[yellow]Warning: context {context} references missing user {user}[/yellow]")

    if args.dry_run:
        console.print("dry-run enabled: no changes made.")
        return 0

    if output_path.exists() and not args.no_backup:
        backup_path = backup_file(output_path)
        console.print(f"Backup saved: {backup_path}")

    save_document(merged, output_path)
    console.print("done.")
    return 0


def cmd_switch(args: argparse.Namespace) -> int:
    input_paths = resolve_inputs(args.files)
    merged = merge_documents(load_documents(input_paths)).document
    target = Path(args.kubeconfig).expanduser() if args.kubeconfig else input_paths[0]

    name = choose_context(merged, args.context)
    if name is None:
        return 1
    return switch_and_save(target, name, hint=f"merge it into {target} first")


def cmd_list(args: argparse.Namespace) -> int:
    document = merge_documents(load_documents(resolve_inputs(args.files))).document

    if args.names:
        for name in sorted(list_context_names(document)):
            print(name)
        return 0

    display_contexts(describe_contexts(document))
    return 0


def cmd_current(args: argparse.Namespace) -> int:
    document = merge_documents(load_documents(resolve_inputs(args.files))).document
    print(f"Current context: {resolve_current_context(document)}")
    print(f"Cluster: {resolve_current_cluster(document)}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    try:
        return args.func(args)
    except KubeconfigError as exc:
        console.print(f"Error: {exc}", style="red", markup=False)
        return 1
    except Exception as e:
        console.print(f"Error: {e}", style="red", markup=False)
        logger.exception("Unexpected error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
