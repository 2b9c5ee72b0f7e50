"""CLI interface for pygdrive."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import DriveClient
from .config import Config
from .exceptions import DriveAPIError, SyncError
from .output import OutputFormatter
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_TIMEOUT,
    UPLOAD_CHUNK_ALIGNMENT,
    format_datetime,
    format_size,
    truncate_string,
)

DEFAULT_PATH_WIDTH = 60


@click.group()
@click.option(
    "--access-token",
    "-t",
    envvar="PYGDRIVE_ACCESS_TOKEN",
    help="OAuth access token for Google Drive",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="PYGDRIVE_CONFIG_DIR",
    help="Directory holding the config and cache files",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pygdrive")
@click.pass_context
def main(
    ctx: Any,
    access_token: Optional[str],
    config_dir: Optional[Path],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """PyGDrive - Synchronize local directories with Google Drive."""
    # Store settings in context for subcommands to access
    ctx.ensure_object(dict)
    ctx.obj["access_token"] = access_token
    ctx.obj["config"] = Config(config_dir)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    # Configure logging based on verbose flag
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        # Enable debug logging for pygdrive modules
        logging.getLogger("pygdrive").setLevel(logging.DEBUG)
    else:
        # Set default logging level to WARNING to suppress debug/info messages
        logging.basicConfig(level=logging.WARNING)


def _create_client(ctx: Any) -> DriveClient:
    """Create an API client from the CLI options and configuration."""
    cfg: Config = ctx.obj["config"]
    out: OutputFormatter = ctx.obj["out"]

    access_token = ctx.obj.get("access_token") or cfg.access_token
    if not access_token:
        out.error("Access token not configured.")
        out.info("Run 'pygdrive init' or set PYGDRIVE_ACCESS_TOKEN")
        ctx.exit(1)

    return DriveClient(
        access_token=access_token,
        api_url=cfg.api_url,
        upload_url=cfg.upload_url,
    )


@main.command()
@click.option(
    "--access-token",
    "-t",
    prompt="Enter your Google Drive access token",
    hide_input=True,
    help="OAuth access token",
)
@click.pass_context
def init(ctx: Any, access_token: str) -> None:
    """Store an access token in the config file.

    The token is saved to ~/.config/pygdrive/config (or --config-dir).
    """
    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    try:
        cfg.save_access_token(access_token)
    except OSError as e:
        out.error(f"Initialization failed: {e}")
        ctx.exit(1)

    out.print_summary(
        "Initialization Complete",
        [
            ("Status", "Configuration saved successfully"),
            ("Config file", str(cfg.get_config_path())),
        ],
    )


# =============================================================================
# Sync commands
# =============================================================================


@main.group()
def sync() -> None:
    """Sync local directories with remote sync roots."""


@sync.command(name="list")
@click.option("--no-header", is_flag=True, help="Don't print the header")
@click.pass_context
def sync_list(ctx: Any, no_header: bool) -> None:
    """List all remote directories marked as sync root."""
    from .sync import SyncEngine

    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    try:
        roots = SyncEngine(client, out).list_sync_roots()
    except DriveAPIError as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    rows = [
        {
            "id": root.id,
            "name": root.name,
            "created": format_datetime(root.created_time),
        }
        for root in roots
    ]
    if out.json_output:
        out.output_json(rows)
        return

    if not rows:
        out.info("No sync roots found")
        return

    out.output_table(
        rows,
        ["id", "name", "created"],
        {"id": "Id", "name": "Name", "created": "Created"},
        show_header=not no_header,
    )


@sync.command(name="content")
@click.argument("root_id")
@click.option(
    "--order",
    "order_by",
    help="API sort order of every folder listing (e.g. 'name desc'), "
    "sorted by path when omitted",
)
@click.option(
    "--path-width",
    type=click.IntRange(min=0),
    default=DEFAULT_PATH_WIDTH,
    show_default=True,
    help="Width of path column, minimum 9, use 0 for full width",
)
@click.option("--no-header", is_flag=True, help="Don't print the header")
@click.option("--bytes", "size_in_bytes", is_flag=True, help="Show sizes in bytes")
@click.pass_context
def sync_content(
    ctx: Any,
    root_id: str,
    order_by: Optional[str],
    path_width: int,
    no_header: bool,
    size_in_bytes: bool,
) -> None:
    """List the recursive content of a sync root.

    ROOT_ID: Id of the remote sync root directory
    """
    from .sync import SyncEngine

    out: OutputFormatter = ctx.obj["out"]
    client = _create_client(ctx)

    try:
        files = SyncEngine(client, out).list_sync_content(
            root_id, order_by=order_by
        )
    except (SyncError, DriveAPIError) as e:
        out.error(str(e))
        ctx.exit(1)
    finally:
        client.close()

    rows = [
        {
            "id": rf.id,
            "path": rf.relative_path,
            "type": "dir" if rf.is_dir else ("bin" if rf.is_binary else "doc"),
            "size": _format_content_size(rf.size, rf.is_dir, size_in_bytes),
            "modified": format_datetime(rf.entry.modified_time),
        }
        for rf in files
    ]
    if out.json_output:
        out.output_json(rows)
        return

    for row in rows:
        row["path"] = truncate_string(row["path"], path_width)

    out.output_table(
        rows,
        ["id", "path", "type", "size", "modified"],
        {
            "id": "Id",
            "path": "Path",
            "type": "Type",
            "size": "Size",
            "modified": "Modified",
        },
        show_header=not no_header,
    )


def _format_content_size(size: int, is_dir: bool, size_in_bytes: bool) -> str:
    if is_dir:
        return ""
    if size_in_bytes:
        return f"{size} B"
    return format_size(size)


def _sync_options(func: Any) -> Any:
    """Options shared by the upload and download commands."""
    options = [
        click.option(
            "--keep-remote",
            is_flag=True,
            help="Keep remote file when a conflict is encountered",
        ),
        click.option(
            "--keep-local",
            is_flag=True,
            help="Keep local file when a conflict is encountered",
        ),
        click.option(
            "--keep-largest",
            is_flag=True,
            help="Keep largest file when a conflict is encountered",
        ),
        click.option(
            "--delete-extraneous",
            is_flag=True,
            help="Delete extraneous files on the receiving side",
        ),
        click.option(
            "--dry-run", is_flag=True, help="Show what would be synced without syncing"
        ),
        click.option(
            "--no-cache",
            is_flag=True,
            help="Always hash local files instead of using the file cache",
        ),
        click.option(
            "--timeout",
            type=click.IntRange(min=0),
            default=DEFAULT_TIMEOUT,
            show_default=True,
            help="Idle timeout in seconds, 0 disables the timeout",
        ),
        click.option(
            "--chunksize",
            type=click.IntRange(min=1),
            default=DEFAULT_CHUNK_SIZE,
            show_default=True,
            help="Upload chunk size in bytes, a multiple of 256 KiB",
        ),
        click.option(
            "--no-progress",
            is_flag=True,
            help="Disable progress bars",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _run_sync(
    ctx: Any,
    direction: str,
    root_id: str,
    path: Path,
    keep_remote: bool,
    keep_local: bool,
    keep_largest: bool,
    delete_extraneous: bool,
    dry_run: bool,
    no_cache: bool,
    timeout: int,
    chunksize: int,
    no_progress: bool,
) -> None:
    from .cli_progress import run_sync_with_progress
    from .sync import (
        CachedMd5Comparer,
        ConflictResolution,
        DownloadSyncArgs,
        Md5Comparer,
        SyncEngine,
        UploadSyncArgs,
    )

    out: OutputFormatter = ctx.obj["out"]
    cfg: Config = ctx.obj["config"]

    if sum([keep_remote, keep_local, keep_largest]) > 1:
        out.error(
            "Only one of --keep-remote, --keep-local and --keep-largest "
            "can be given"
        )
        ctx.exit(1)

    if chunksize % UPLOAD_CHUNK_ALIGNMENT != 0:
        out.error(
            f"Chunk size must be a multiple of {UPLOAD_CHUNK_ALIGNMENT} bytes"
        )
        ctx.exit(1)

    resolution = ConflictResolution.NONE
    if keep_remote:
        resolution = ConflictResolution.KEEP_REMOTE
    elif keep_local:
        resolution = ConflictResolution.KEEP_LOCAL
    elif keep_largest:
        resolution = ConflictResolution.KEEP_LARGEST

    comparer = (
        Md5Comparer()
        if no_cache
        else CachedMd5Comparer(cache_path=cfg.get_cache_path())
    )

    args_type = UploadSyncArgs if direction == "upload" else DownloadSyncArgs
    args = args_type(
        root_id=root_id,
        path=path,
        dry_run=dry_run,
        delete_extraneous=delete_extraneous,
        resolution=resolution,
        timeout=timeout,
        chunk_size=chunksize,
        comparer=comparer,
    )

    client = _create_client(ctx)
    engine = SyncEngine(client, out)

    try:
        stats = run_sync_with_progress(
            engine,
            args,
            show_progress=not (no_progress or out.quiet or out.json_output),
        )
    except KeyboardInterrupt:
        out.warning("\nSync cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT
    except (SyncError, DriveAPIError) as e:
        out.error(str(e))
        ctx.exit(1)
    except OSError as e:
        out.error(f"Local I/O error: {e}")
        ctx.exit(1)
    finally:
        client.close()

    if out.json_output:
        out.output_json(stats)


@sync.command(name="upload")
@click.argument("path", type=click.Path(path_type=Path))
@click.argument("root_id")
@_sync_options
@click.pass_context
def sync_upload(ctx: Any, path: Path, root_id: str, **options: Any) -> None:
    """Sync a local directory to a remote sync root.

    PATH: Local directory to upload

    ROOT_ID: Id of the remote root directory (must be empty on first sync)

    Examples:
        pygdrive sync upload ./photos 1AbC...              # Mirror ./photos
        pygdrive sync upload ./photos 1AbC... --dry-run    # Preview changes
        pygdrive sync upload ./photos 1AbC... --keep-largest --delete-extraneous
    """
    _run_sync(ctx, "upload", root_id, path, **options)


@sync.command(name="download")
@click.argument("root_id")
@click.argument("path", type=click.Path(path_type=Path))
@_sync_options
@click.pass_context
def sync_download(ctx: Any, root_id: str, path: Path, **options: Any) -> None:
    """Sync a remote sync root to a local directory.

    ROOT_ID: Id of the remote sync root directory

    PATH: Local directory to download into (created if missing)

    Examples:
        pygdrive sync download 1AbC... ./photos             # Mirror remote root
        pygdrive sync download 1AbC... ./photos --keep-remote
    """
    _run_sync(ctx, "download", root_id, path, **options)


if __name__ == "__main__":
    main()
