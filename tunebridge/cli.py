"""
Command-line interface for tunebridge.

This module implements the CLI using Click, providing the commands for
converting and syncing playlists between Spotify and YouTube Music.
rich-click is used for the output colors.

Commands:
    tunebridge convert <source> --from <platform> --to <platform>
    tunebridge sync <source>            Sync one converted playlist
    tunebridge sync --all               Sync every converted playlist
    tunebridge resolve <source> <track> Resolve one track again
    tunebridge show <source>            Show stored resolutions
    tunebridge stats                    Conversion statistics

Options:
    --config <path>                     Config file (default ./config.yaml)
    --timeout <seconds>                 Deadline for a whole run
    --json                              Print the result as JSON

Usage:
    # Convert a Spotify playlist into a new YouTube Music playlist
    tunebridge convert "https://open.spotify.com/playlist/..." --from spotify --to youtube

    # Bring the YouTube Music copy up to date
    tunebridge sync "https://open.spotify.com/playlist/..."

    # Sync everything converted so far
    tunebridge sync --all

Exit Codes:
    0    Success (unmatched tracks do not make a run fail)
    1    Configuration error
    2    Database error
    3    Authentication rejected by a platform
    4    Any other application error
    130  Cancelled, timed out or interrupted
"""

import json
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from tunebridge import __version__
from tunebridge.catalog import CatalogClient, build_catalog
from tunebridge.conversion import ConversionOrchestrator, SyncReconciler
from tunebridge.core import (
    AuthInvalidError,
    CancellationToken,
    Config,
    ConfigError,
    ConversionResult,
    DatabaseError,
    MappingNotFoundError,
    MappingStore,
    OperationCancelled,
    PlaylistLocks,
    PlaylistMapping,
    TuneBridgeError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from tunebridge.core.models import PLATFORMS, Matched
from tunebridge.core.progress import ResolutionProgressBar
from tunebridge.matching import ResolutionPipeline
from tunebridge.matching.pipeline import ResolvedCallback
from tunebridge.utils import ensure_directory, extract_playlist_id, format_duration

logger = get_logger(__name__)


PLATFORM_CHOICE = click.Choice(PLATFORMS)

timeout_option = click.option(
    "--timeout",
    type=click.FloatRange(min=0.001),
    default=None,
    metavar="<seconds>",
    help="Deadline for the whole run (overrides resolution.timeout)"
)
json_option = click.option(
    "--json", "as_json",
    is_flag=True,
    help="Print the result as JSON"
)


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.version_option(__version__, "--version", prog_name="tunebridge")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """
    tunebridge: Convert and sync playlists between Spotify and YouTube Music.

    Each track is searched on the target platform and accepted only when
    the best candidate is both a good match and clearly better than the
    runner-up. Everything else is reported and retried on the next sync.

    \b
    BASIC USAGE:
        tunebridge convert "https://open.spotify.com/playlist/..." --from spotify --to youtube
        tunebridge sync "https://open.spotify.com/playlist/..."
        tunebridge sync --all
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# =============================================================================
# Commands
# =============================================================================

@cli.command()
@click.argument("source", metavar="<playlist>")
@click.option("--from", "source_platform", type=PLATFORM_CHOICE, required=True,
              help="Platform the playlist lives on")
@click.option("--to", "target_platform", type=PLATFORM_CHOICE, required=True,
              help="Platform to create the new playlist on")
@timeout_option
@json_option
@click.pass_context
def convert(
    ctx: click.Context,
    source: str,
    source_platform: str,
    target_platform: str,
    timeout: Optional[float],
    as_json: bool
) -> None:
    """Convert a playlist into a new playlist on the other platform."""
    if source_platform == target_platform:
        raise click.UsageError("--from and --to must name different platforms")
    try:
        playlist_id = extract_playlist_id(source_platform, source)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="<playlist>")

    with _application(ctx) as (config, store):
        pipeline = ResolutionPipeline(config.matching, config.resolution)
        orchestrator = ConversionOrchestrator(store, pipeline)
        source_client = build_catalog(source_platform, config)
        target_client = build_catalog(target_platform, config)
        cancel = CancellationToken(timeout=_timeout(timeout, config))

        result = _run_with_progress(
            not as_json,
            lambda on_resolved: orchestrator.convert(
                playlist_id, source_client, target_client,
                cancel=cancel, on_resolved=on_resolved
            )
        )
        _print_result(result, target_client, as_json)


@cli.command()
@click.argument("source", metavar="<playlist>", required=False)
@click.option("--all", "sync_all", is_flag=True, help="Sync every converted playlist")
@timeout_option
@json_option
@click.pass_context
def sync(
    ctx: click.Context,
    source: Optional[str],
    sync_all: bool,
    timeout: Optional[float],
    as_json: bool
) -> None:
    """Sync converted playlists with their source playlists."""
    if bool(source) == sync_all:
        raise click.UsageError("Pass either a playlist or --all")

    with _application(ctx) as (config, store):
        pipeline = ResolutionPipeline(config.matching, config.resolution)
        reconciler = SyncReconciler(store, pipeline, PlaylistLocks())
        clients: dict[str, CatalogClient] = {}

        def client_for(platform: str) -> CatalogClient:
            if platform not in clients:
                clients[platform] = build_catalog(platform, config)
            return clients[platform]

        def sync_one(mapping: PlaylistMapping) -> ConversionResult:
            target_client = client_for(mapping.target_platform)
            source_client = client_for(mapping.source_platform)
            cancel = CancellationToken(timeout=_timeout(timeout, config))
            return _run_with_progress(
                not as_json,
                lambda on_resolved: reconciler.sync(
                    mapping, source_client, target_client,
                    cancel=cancel, on_resolved=on_resolved
                )
            )

        if not sync_all:
            mapping = _find_mapping(store, source)
            result = sync_one(mapping)
            _print_result(result, client_for(mapping.target_platform), as_json)
            return

        mappings = store.list_mappings()
        if not mappings:
            click.echo("No converted playlists yet. Run convert first.", err=True)
            return

        reports = []
        failures = 0
        for mapping in mappings:
            logger.info(f"Syncing '{mapping.source_name}' ({mapping.source_playlist_id})")
            try:
                result = sync_one(mapping)
            except (AuthInvalidError, OperationCancelled):
                raise
            except TuneBridgeError as e:
                failures += 1
                logger.error(f"Sync of {mapping.source_playlist_id} failed: {e}")
                reports.append({
                    "source_playlist_id": mapping.source_playlist_id,
                    "success": False,
                    "message": str(e),
                })
                continue

            reports.append({"source_playlist_id": mapping.source_playlist_id, **result.to_dict()})
            if not as_json:
                _print_result(result, client_for(mapping.target_platform), as_json=False)

        if as_json:
            click.echo(json.dumps(reports, indent=2))
        else:
            click.echo(f"Synced {len(mappings) - failures}/{len(mappings)} playlists")

        if failures:
            sys.exit(4)


@cli.command()
@click.argument("source", metavar="<playlist>")
@click.argument("track_id", metavar="<track-id>")
@click.option("--force", is_flag=True, help="Search again even if the track is already matched")
@timeout_option
@json_option
@click.pass_context
def resolve(
    ctx: click.Context,
    source: str,
    track_id: str,
    force: bool,
    timeout: Optional[float],
    as_json: bool
) -> None:
    """
    Resolve one track of a converted playlist again.

    <track-id> is the source platform ID shown by `tunebridge show`.
    """
    with _application(ctx) as (config, store):
        mapping = _find_mapping(store, source)
        pipeline = ResolutionPipeline(config.matching, config.resolution)
        reconciler = SyncReconciler(store, pipeline, PlaylistLocks())
        target_client = build_catalog(mapping.target_platform, config)
        cancel = CancellationToken(timeout=_timeout(timeout, config))

        resolution = reconciler.resolve_track(
            mapping, track_id, target_client, cancel=cancel, force=force
        )

        source_track = resolution.source_track
        outcome = resolution.outcome
        target_track = outcome.target_track if isinstance(outcome, Matched) else None
        if as_json:
            click.echo(json.dumps({
                "track_id": source_track.track_id,
                "title": source_track.title,
                "artist": source_track.artist,
                "outcome": resolution.outcome_name,
                "reason": resolution.reason,
                "score": outcome.score if isinstance(outcome, Matched) else None,
                "target_track_id": resolution.target_track_id,
                "target_url": target_track.url if target_track else None,
            }, indent=2))
        elif target_track is not None:
            click.echo(
                f"Matched {source_track.display()} -> "
                f"{target_track.url or target_track.track_id} (score {outcome.score:.2f})"
            )
        else:
            click.echo(
                f"Not matched: {source_track.display()} "
                f"[{resolution.outcome_name}: {resolution.reason}]"
            )


@cli.command()
@click.argument("source", metavar="<playlist>")
@click.pass_context
def show(ctx: click.Context, source: str) -> None:
    """Show the stored resolution of every track of a converted playlist."""
    with _application(ctx, log_to_files=False) as (_config, store):
        mapping = _find_mapping(store, source)

        click.echo(
            f"{mapping.source_name or mapping.source_playlist_id} "
            f"({mapping.source_platform} -> {mapping.target_platform}, "
            f"target {mapping.target_playlist_id})"
        )
        synced = mapping.last_synced_at.isoformat() if mapping.last_synced_at else "never"
        click.echo(f"Converted {mapping.created_at.isoformat()}, last synced {synced}")
        click.echo("")

        for position, resolution in enumerate(mapping.resolutions, start=1):
            source_track = resolution.source_track
            click.echo(
                f"{position:>4}. {source_track.display()} "
                f"[{format_duration(source_track.duration_seconds)}]  {source_track.track_id}"
            )
            outcome = resolution.outcome
            if isinstance(outcome, Matched):
                click.echo(
                    f"      matched {outcome.score:.2f}  "
                    f"{outcome.target_track.url or outcome.target_track.track_id}"
                )
            else:
                click.echo(f"      {resolution.outcome_name} ({resolution.reason})")

        click.echo("")
        click.echo(f"{mapping.matched_count}/{len(mapping.resolutions)} matched")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show conversion statistics across all converted playlists."""
    with _application(ctx, log_to_files=False) as (_config, store):
        conversion_stats = store.get_stats()

        click.echo("=" * 60)
        click.echo("CONVERSION STATISTICS")
        click.echo("=" * 60)
        click.echo(f"Playlists:         {conversion_stats.playlists}")
        click.echo(f"Tracks:            {conversion_stats.total_tracks}")
        click.echo(f"Matched:           {conversion_stats.matched_tracks}")
        click.echo(f"Pending:           {conversion_stats.pending_tracks}")
        click.echo(f"Match rate:        {conversion_stats.match_rate:.1%}")
        click.echo("=" * 60)


# =============================================================================
# Helpers
# =============================================================================

@contextmanager
def _application(ctx: click.Context, log_to_files: bool = True) -> Iterator[tuple[Config, MappingStore]]:
    """
    Load config, set up logging and open the mapping store.

    Translates application errors into exit codes and always closes the
    store and the log files.
    """
    store: MappingStore | None = None
    try:
        config = load_config(ctx.obj.get("config_path"))
        ensure_directory(config.output.directory)
        if log_to_files:
            setup_logging(config.output.directory)
            logger.info(f"tunebridge {__version__} starting")
        store = MappingStore(config.output.database_path)

        yield config, store

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except AuthInvalidError as e:
        click.echo(f"Authentication error ({e.platform}): {e.message}", err=True)
        click.echo("Check the spotify/youtube credentials in config.yaml", err=True)
        logger.error(f"Authentication error: {e.message}")
        sys.exit(3)

    except OperationCancelled as e:
        reason = "Timed out" if e.timed_out else "Cancelled"
        click.echo(f"{reason}: {e.message}", err=True)
        logger.warning(f"{reason}: {e.message}")
        sys.exit(130)

    except TuneBridgeError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    finally:
        if store is not None:
            store.close()
        shutdown_logging()


def _timeout(cli_timeout: Optional[float], config: Config) -> Optional[float]:
    return cli_timeout if cli_timeout is not None else config.resolution.timeout


def _run_with_progress(
    show_progress: bool,
    run: Callable[[Optional[ResolvedCallback]], ConversionResult]
) -> ConversionResult:
    """Run convert/sync, feeding a progress bar when output is not JSON."""
    if not show_progress:
        return run(None)
    with ResolutionProgressBar() as progress:
        return run(lambda _index, resolution: progress.update(resolution))


def _find_mapping(store: MappingStore, source: str) -> PlaylistMapping:
    """
    Look up a stored mapping by source playlist URL, URI or ID.

    Raises:
        MappingNotFoundError: If no platform's parsing of `source` matches
                              a stored mapping.
    """
    for platform in PLATFORMS:
        try:
            playlist_id = extract_playlist_id(platform, source)
        except ValueError:
            continue
        mapping = store.load_mapping(playlist_id)
        if mapping is not None and mapping.source_platform == platform:
            return mapping

    raise MappingNotFoundError(
        f"No converted playlist matches {source}. Run convert first.",
        details={"source": source}
    )


def _print_result(result: ConversionResult, target_client: CatalogClient, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo(result.message)
    click.echo(f"Target playlist: {target_client.playlist_url(result.new_playlist_id) or result.new_playlist_id}")
    if result.unmatched:
        click.echo(f"Not converted ({len(result.unmatched)}), retried on the next sync:")
        for entry in result.unmatched:
            click.echo(f"  {entry['artist']} - {entry['title']}  [{entry['outcome']}: {entry['reason']}]")


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `tunebridge` from the command line.
    """
    cli(obj={})


if __name__ == "__main__":
    main()
