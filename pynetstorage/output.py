"""Output formatting for the pynetstorage CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from .models import NetStorageFile, TreeResult
from .utils import format_mtime, format_size


class OutputFormatter:
    """Writes human-readable (rich) or JSON output for CLI commands."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of rich text
            quiet: Suppress informational messages
            console: Console for regular output
            err_console: Console for warnings and errors
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    def info(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def print(self, message: Any = "") -> None:
        if not self.json_output:
            self.console.print(message)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table."""
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in items:
            table.add_row(key, value)
        self.console.print(table)

    def print_files(self, files: list[NetStorageFile]) -> None:
        """Print a directory listing as a table."""
        table = Table(show_header=True, header_style="bold")
        table.add_column("Type")
        table.add_column("Name")
        table.add_column("Size", justify="right")
        table.add_column("Modified")
        for f in files:
            name = f.name
            if f.is_dir:
                name = f"[bold blue]{name}/[/bold blue]"
            elif f.is_symlink and f.target:
                name = f"[cyan]{name}[/cyan] -> {f.target}"
            size = format_size(f.size) if f.size is not None else ""
            table.add_row(f.type, name, size, format_mtime(f.mtime))
        self.console.print(table)


def render_tree(
    root: str,
    result: TreeResult,
    show_size: bool = False,
    show_mtime: bool = False,
    show_checksum: bool = False,
) -> Tree:
    """Build a rich Tree from an aggregated remote walk.

    Directory labels show the aggregated size of their contents when
    ``show_size`` is set.
    """
    sizes = result.directory_size_map

    def label(name: str, file: NetStorageFile, path: str) -> str:
        text = f"[bold blue]{name}/[/bold blue]" if file.is_dir else name
        details = []
        if show_size:
            if file.is_dir:
                details.append(format_size(sizes.get(path, 0)))
            elif file.size is not None:
                details.append(format_size(file.size))
        if show_mtime and file.mtime is not None:
            details.append(format_mtime(file.mtime))
        if show_checksum and file.md5:
            details.append(f"md5:{file.md5}")
        if file.is_symlink and file.target:
            text = f"{text} -> {file.target}"
        if details:
            text = f"{text} [dim]({', '.join(details)})[/dim]"
        return text

    root_label = f"[bold]{root}[/bold]"
    if show_size:
        root_label = f"{root_label} [dim]({format_size(result.total_size)})[/dim]"
    tree = Tree(root_label)

    nodes: dict[str, Tree] = {}
    for bucket in result.depth_buckets:
        for entry in bucket.entries:
            parent_node = nodes.get(entry.parent, tree)
            node = parent_node.add(label(entry.file.name, entry.file, entry.path))
            if entry.file.is_dir:
                nodes[entry.path] = node
    return tree
