"""CLI interface for Akamai NetStorage."""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Optional

import click

from .api import NetStorageClient
from .config import CONFIG_ENV_VAR, load_config
from .exceptions import (
    NetStorageAmbiguityError,
    NetStorageConfigError,
    NetStorageError,
    NetStorageNotFoundError,
)
from .output import OutputFormatter, render_tree
from .sync import (
    CompareStrategy,
    ConflictResolution,
    DeleteExtraneous,
    SyncDirection,
    SyncEngine,
    SyncResult,
)
from .transfers import (
    SkippedTransfer,
    TransferResult,
    download_directory,
    remove_directory,
    summarize_skips,
    upload_directory,
)
from .tree import build_tree
from .utils import format_size

logger = logging.getLogger(__name__)


def _create_client(ctx: Any) -> NetStorageClient:
    """Build a client from the config selected on the command line."""
    config = load_config(ctx.obj["config_path"])
    return NetStorageClient(config)


def _run(ctx: Any, coro_factory: Any) -> Any:
    """Run a coroutine with a fresh client, rendering library errors.

    Args:
        ctx: Click context
        coro_factory: Callable taking the client and returning a coroutine

    Returns:
        The coroutine's result
    """
    out: OutputFormatter = ctx.obj["out"]

    async def runner() -> Any:
        async with _create_client(ctx) as client:
            return await coro_factory(client)

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        out.warning("Cancelled by user")
        ctx.exit(130)
    except NetStorageConfigError as e:
        out.error(f"Configuration error: {e}")
        out.info(f"Set NETSTORAGE_* environment variables or ${CONFIG_ENV_VAR}")
        ctx.exit(1)
    except NetStorageNotFoundError as e:
        out.error(f"Not found: {e}")
        ctx.exit(1)
    except NetStorageAmbiguityError as e:
        out.error(str(e))
        ctx.exit(1)
    except NetStorageError as e:
        out.error(f"API error: {e}")
        ctx.exit(1)


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar=CONFIG_ENV_VAR,
    help="Path to the JSON config file",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pynetstorage")
@click.pass_context
def main(
    ctx: Any,
    config_path: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """pynetstorage - Browse, transfer and sync files on Akamai NetStorage."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pynetstorage").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("path", default="/")
@click.pass_context
def ls(ctx: Any, path: str) -> None:
    """List the contents of a remote directory."""
    out: OutputFormatter = ctx.obj["out"]
    listing = _run(ctx, lambda client: client.list_directory(path))

    if out.json_output:
        out.output_json(
            {
                "directory": listing.directory,
                "files": [f.to_dict() for f in listing.files],
            }
        )
        return
    if not listing.files:
        out.info(f"{path} is empty")
        return
    out.print_files(listing.files)


@main.command()
@click.argument("path")
@click.pass_context
def stat(ctx: Any, path: str) -> None:
    """Show metadata of a remote file or directory."""
    out: OutputFormatter = ctx.obj["out"]
    meta = _run(ctx, lambda client: client.get_metadata(path))

    if out.json_output:
        out.output_json(meta.to_dict())
        return
    out.print_files([meta])


@main.command()
@click.argument("path", default="/")
@click.option("--max-depth", "-d", type=int, default=None, help="Deepest level shown")
@click.option("--size", "show_size", is_flag=True, help="Show file and directory sizes")
@click.option("--mtime", "show_mtime", is_flag=True, help="Show modification times")
@click.option("--checksum", "show_checksum", is_flag=True, help="Show MD5 checksums")
@click.pass_context
def tree(
    ctx: Any,
    path: str,
    max_depth: Optional[int],
    show_size: bool,
    show_mtime: bool,
    show_checksum: bool,
) -> None:
    """Display a remote directory as a tree.

    Examples:
        pynetstorage tree /123456/assets --size
        pynetstorage tree /123456 -d 1
    """
    out: OutputFormatter = ctx.obj["out"]
    result = _run(ctx, lambda client: build_tree(client, path, max_depth=max_depth))

    if out.json_output:
        out.output_json(
            {
                "path": path,
                "total_size": result.total_size,
                "directory_sizes": result.directory_size_map,
                "entries": [
                    {
                        "path": entry.path,
                        "depth": entry.depth,
                        **entry.file.to_dict(),
                    }
                    for bucket in result.depth_buckets
                    for entry in bucket.entries
                ],
            }
        )
        return
    out.print(
        render_tree(
            path,
            result,
            show_size=show_size,
            show_mtime=show_mtime,
            show_checksum=show_checksum,
        )
    )


def _print_sync_result(out: OutputFormatter, result: SyncResult, dry_run: bool) -> None:
    if out.json_output:
        out.output_json(result.to_dict())
        return

    for event in result.transferred:
        if event.direction == SyncDirection.UPLOAD.value:
            verb = "Would upload" if dry_run else "Uploaded"
            out.info(f"{verb} {event.local_path} -> {event.remote_path}")
        else:
            verb = "Would download" if dry_run else "Downloaded"
            out.info(f"{verb} {event.remote_path} -> {event.local_path}")
    for event in result.errors:
        out.warning(f"Failed: {event.local_path}: {event.error}")

    out.print_summary(
        "Sync Complete" if not dry_run else "Sync Plan",
        [
            ("Transferred", str(len(result.transferred))),
            ("Skipped", str(len(result.skipped) - len(result.errors))),
            ("Failed", str(len(result.errors))),
            ("Deleted", str(len(result.deleted))),
        ],
    )


@main.command()
@click.argument("local_path", type=click.Path())
@click.argument("remote_path", required=False, default=None)
@click.option(
    "--mode",
    "-m",
    type=click.Choice([d.value for d in SyncDirection]),
    default=SyncDirection.BOTH.value,
    show_default=True,
    help="Sync direction",
)
@click.option(
    "--strategy",
    "-s",
    type=click.Choice([s.value for s in CompareStrategy]),
    default=CompareStrategy.EXISTS.value,
    show_default=True,
    help="How local and remote files are compared",
)
@click.option(
    "--conflict-resolution",
    "-c",
    type=click.Choice([c.value for c in ConflictResolution]),
    default=ConflictResolution.PREFER_LOCAL.value,
    show_default=True,
    help="Which side wins when both differ",
)
@click.option(
    "--prune",
    "-p",
    type=click.Choice([d.value for d in DeleteExtraneous]),
    default=DeleteExtraneous.NONE.value,
    show_default=True,
    help="Delete files that exist on one side only",
)
@click.option(
    "--max-concurrency",
    "-C",
    type=click.IntRange(min=1),
    default=5,
    show_default=True,
    help="Maximum number of concurrent transfers",
)
@click.option("--dry-run", "-d", is_flag=True, help="Show what would be done")
@click.option(
    "--ignore",
    "-i",
    multiple=True,
    help="Glob pattern to exclude (can be used multiple times)",
)
@click.pass_context
def sync(
    ctx: Any,
    local_path: str,
    remote_path: Optional[str],
    mode: str,
    strategy: str,
    conflict_resolution: str,
    prune: str,
    max_concurrency: int,
    dry_run: bool,
    ignore: tuple[str, ...],
) -> None:
    """Synchronize a local file or directory with NetStorage.

    REMOTE_PATH defaults to the basename of LOCAL_PATH.

    Examples:
        pynetstorage sync ./site /123456/site --strategy size
        pynetstorage sync -m download -p local ./downloads /123456/photos
        pynetstorage sync ./docs --dry-run --ignore "**/*.tmp"
    """
    out: OutputFormatter = ctx.obj["out"]
    remote = remote_path or os.path.basename(os.path.abspath(local_path))
    if dry_run:
        out.info("Dry run: No changes will be made")

    async def run_sync(client: NetStorageClient) -> SyncResult:
        engine = SyncEngine(client)
        return await engine.sync(
            local_path,
            remote,
            direction=mode,
            compare_strategy=strategy,
            conflict_resolution=conflict_resolution,
            delete_extraneous=prune,
            dry_run=dry_run,
            max_concurrency=max_concurrency,
            ignore=list(ignore),
        )

    result = _run(ctx, run_sync)
    _print_sync_result(out, result, dry_run)
    if result.errors:
        ctx.exit(1)


def _print_transfer_summary(
    out: OutputFormatter,
    title: str,
    results: list[TransferResult],
    skipped: list[SkippedTransfer],
) -> None:
    failed = [s for s in skipped if s.reason == "error"]
    if out.json_output:
        out.output_json(
            {
                "transferred": [
                    {"local_path": r.local_path, "remote_path": r.remote_path}
                    for r in results
                ],
                "skipped": summarize_skips(skipped),
            }
        )
        return
    for s in failed:
        out.warning(f"Failed: {s.local_path or s.remote_path}: {s.error}")
    out.print_summary(
        title,
        [("Transferred", f"{len(results)} file(s)")]
        + [
            (f"Skipped ({reason})", str(count))
            for reason, count in summarize_skips(skipped).items()
        ],
    )


@main.command()
@click.argument("local_path", type=click.Path(exists=True))
@click.argument("remote_path")
@click.option("--dry-run", is_flag=True, help="Show what would be uploaded")
@click.option("--no-overwrite", is_flag=True, help="Keep existing remote files")
@click.option("--ignore", "-i", multiple=True, help="Glob pattern to exclude")
@click.pass_context
def upload(
    ctx: Any,
    local_path: str,
    remote_path: str,
    dry_run: bool,
    no_overwrite: bool,
    ignore: tuple[str, ...],
) -> None:
    """Upload a local file or directory to NetStorage."""
    out: OutputFormatter = ctx.obj["out"]
    skipped: list[SkippedTransfer] = []

    if os.path.isfile(local_path):
        size = os.path.getsize(local_path)
        if dry_run:
            out.info(f"Would upload {local_path} ({format_size(size)}) -> {remote_path}")
            return
        _run(ctx, lambda client: client.upload_file(local_path, remote_path))
        out.success(f"Uploaded {local_path} -> {remote_path} ({format_size(size)})")
        return

    results = _run(
        ctx,
        lambda client: upload_directory(
            client,
            local_path,
            remote_path,
            overwrite=not no_overwrite,
            ignore=list(ignore),
            dry_run=dry_run,
            on_skip=skipped.append,
        ),
    )
    _print_transfer_summary(out, "Upload Complete", results, skipped)
    if any(s.reason == "error" for s in skipped):
        ctx.exit(1)


@main.command()
@click.argument("remote_path")
@click.argument("local_path", type=click.Path())
@click.option("--dry-run", is_flag=True, help="Show what would be downloaded")
@click.option("--overwrite", is_flag=True, help="Replace existing local files")
@click.pass_context
def download(
    ctx: Any, remote_path: str, local_path: str, dry_run: bool, overwrite: bool
) -> None:
    """Download a remote file or directory."""
    out: OutputFormatter = ctx.obj["out"]
    skipped: list[SkippedTransfer] = []

    async def run_download(client: NetStorageClient) -> Optional[list[TransferResult]]:
        info = await client.inspect_remote_path(remote_path)
        if info.file is not None:
            target = local_path
            if os.path.isdir(local_path):
                target = os.path.join(local_path, info.file.name)
            if dry_run:
                skipped.append(SkippedTransfer(remote_path, "dry_run", target))
                return []
            status = await client.download_file(remote_path, target)
            return [TransferResult(target, remote_path, status.code)]
        if info.du is None:
            raise NetStorageNotFoundError(f"{remote_path} does not exist", 404)
        return await download_directory(
            client,
            remote_path,
            local_path,
            overwrite=overwrite,
            dry_run=dry_run,
            on_skip=skipped.append,
        )

    results = _run(ctx, run_download)
    _print_transfer_summary(out, "Download Complete", results, skipped)
    if any(s.reason == "error" for s in skipped):
        ctx.exit(1)


@main.command()
@click.argument("path")
@click.option("--recursive", "-r", is_flag=True, help="Remove a directory and its contents")
@click.option("--dry-run", is_flag=True, help="Show what would be removed")
@click.pass_context
def rm(ctx: Any, path: str, recursive: bool, dry_run: bool) -> None:
    """Remove a remote file (or directory with --recursive)."""
    out: OutputFormatter = ctx.obj["out"]
    removed: list[str] = []
    skipped: list[SkippedTransfer] = []

    async def run_rm(client: NetStorageClient) -> None:
        if recursive:
            await remove_directory(
                client,
                path,
                dry_run=dry_run,
                on_remove=removed.append,
                on_skip=skipped.append,
            )
            return
        if dry_run:
            out.info(f"Would remove {path}")
            return
        await client.delete_file(path)
        removed.append(path)

    _run(ctx, run_rm)

    if out.json_output:
        out.output_json({"removed": removed, "skipped": summarize_skips(skipped)})
    else:
        for p in removed:
            out.success(f"Removed {p}")
        for s in skipped:
            if s.reason == "error":
                out.warning(f"Failed to remove {s.remote_path}: {s.error}")
    if any(s.reason == "error" for s in skipped):
        ctx.exit(1)


if __name__ == "__main__":
    main()
