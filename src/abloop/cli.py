#!/usr/bin/env python3
"""
A-B Loop CLI

Usage:
    abloop timecode 00:01:30:12 --fps 25         # Timecode <-> seconds
    abloop add-loop movie.mp4 00:00:05:00 00:00:10:00 --name chorus
    abloop add-playlist movie.mp4 drills -s 00:00:00:00 00:00:05:00 -s 00:00:10:00 00:00:15:00
    abloop list movie.mp4                        # Show saved loops and playlists
    abloop simulate movie.mp4 --loop 3f2a        # Dry-run ticks through a loop
"""

import argparse
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import EngineConfig, resolve_store_path
from .engine import LoopEngine, MutationResult
from .events import EventQueue
from .models import ABLoop, SegmentPlaylist, TimePoint, format_timestamp
from .store import JsonFileStore

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _create_engine(args) -> LoopEngine:
    """Create a LoopEngine with CLI args."""
    config = EngineConfig(default_frame_rate=args.fps)
    return LoopEngine(JsonFileStore(resolve_store_path(args.store)), config)


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _report(result: MutationResult, success: str) -> None:
    if not result.applied:
        _fail(result.message or "Nothing to change.")
    console.print(f"[bold green]{success}[/bold green]")
    if not result.persisted:
        console.print(f"[yellow]Warning:[/yellow] {result.message}")


def _match_id(items, ident: str):
    """Find the single item whose id starts with `ident`."""
    matches = [item for item in items if str(item.id).startswith(ident.lower())]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise ValueError(f"No entry matches id '{ident}'")
    raise ValueError(f"Id '{ident}' is ambiguous ({len(matches)} matches)")


def _loop_table(video: str, loops: list[ABLoop]) -> Table:
    table = Table(title=f"A-B Loops - {video}")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Point A", style="green")
    table.add_column("Point B", style="green")
    table.add_column("Duration", style="yellow")
    for loop in loops:
        table.add_row(
            str(loop.id)[:8],
            loop.display_name,
            loop.point_a.to_string(),
            loop.point_b.to_string(),
            f"{loop.duration():.2f}s",
        )
    return table


def _playlist_table(video: str, playlists: list[SegmentPlaylist]) -> Table:
    table = Table(title=f"Segment Playlists - {video}")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Segments", style="magenta")
    table.add_column("Total", style="yellow")
    table.add_column("Looping", style="blue")
    for playlist in playlists:
        ranges = ", ".join(f"{s.start_point}-{s.end_point}" for s in playlist.segments)
        table.add_row(
            str(playlist.id)[:8],
            playlist.name,
            f"{len(playlist.segments)} segment(s): {ranges}",
            f"{playlist.total_duration():.2f}s",
            "yes" if playlist.is_looping else "no",
        )
    return table


def cmd_timecode(args):
    """Convert between a timecode and seconds."""
    point = TimePoint.parse(args.value, args.fps)
    if point is None:
        try:
            seconds = float(args.value)
        except ValueError:
            _fail(f"Not a timecode or a number: {args.value}")
        point = TimePoint.from_continuous(seconds, args.fps)

    console.print(
        f"{point.to_string()} @ {args.fps:g} fps = {point.to_continuous():.6f}s "
        f"[dim]({format_timestamp(point.to_continuous())})[/dim]"
    )


def cmd_add_loop(args):
    engine = _create_engine(args)
    result = engine.create_loop(args.video, args.point_a, args.point_b, name=args.name, frame_rate=args.fps)
    if not result.applied:
        _fail(result.message)
    loop = result.value
    _report(result, f"Added loop {str(loop.id)[:8]} ({loop.point_a} -> {loop.point_b})")


def cmd_add_playlist(args):
    engine = _create_engine(args)
    result = engine.create_segment_playlist(
        args.video,
        args.name,
        args.segments,
        is_looping=args.loop,
        frame_rate=args.fps,
    )
    if not result.applied:
        _fail(result.message)
    playlist = result.value
    _report(result, f"Added playlist {str(playlist.id)[:8]} with {len(playlist.segments)} segment(s)")


def cmd_list(args):
    engine = _create_engine(args)
    videos = [args.video] if args.video else engine.video_identifiers()

    if not videos:
        console.print("[yellow]No saved loops or playlists.[/yellow]")
        return

    for video in videos:
        loops = engine.list_loops(video)
        playlists = engine.list_segment_playlists(video)
        if not loops and not playlists:
            console.print(f"[yellow]Nothing saved for {video}.[/yellow]")
            continue
        if loops:
            console.print(_loop_table(video, loops))
        if playlists:
            console.print(_playlist_table(video, playlists))


def cmd_remove_loop(args):
    engine = _create_engine(args)
    loop = _match_id(engine.list_loops(args.video), args.id)
    _report(engine.remove_loop(loop.id, args.video), f"Removed loop {loop.display_name}")


def cmd_remove_playlist(args):
    engine = _create_engine(args)
    playlist = _match_id(engine.list_segment_playlists(args.video), args.id)
    _report(engine.remove_segment_playlist(playlist.id, args.video), f"Removed playlist {playlist.name}")


def cmd_clear(args):
    engine = _create_engine(args)
    _report(engine.clear_catalog(args.video), f"Cleared loops and playlists for {args.video}")


def cmd_clear_all(args):
    if not args.yes:
        _fail("Refusing to delete every catalog without --yes.")
    engine = _create_engine(args)
    _report(engine.clear_all_catalogs(), "Cleared all loop data")


def cmd_simulate(args):
    """Drive ticks through an activated loop or playlist, seeking like a host would."""
    engine = _create_engine(args)
    queue = EventQueue()
    engine.add_observer(queue)

    if args.loop:
        loop = _match_id(engine.list_loops(args.video), args.loop)
        engine.activate_loop(loop)
        title = f"Loop {loop.display_name}"
        end = args.end if args.end is not None else loop.point_b.to_continuous() + args.step
    else:
        playlist = _match_id(engine.list_segment_playlists(args.video), args.playlist)
        engine.activate_segment_playlist(playlist)
        title = f"Playlist {playlist.name}"
        end = args.end

    table = Table(title=f"Simulating {title}")
    table.add_column("#", style="cyan", width=4)
    table.add_column("Time", style="green")
    table.add_column("Action", style="yellow")
    table.add_column("Events", style="magenta")

    position = args.start
    for tick in range(1, args.max_ticks + 1):
        if end is not None and position > end:
            break

        target = engine.on_time_tick(position)
        events = ", ".join(e.kind.value for e in queue.drain())
        action = f"seek {target}" if target is not None else "play"
        table.add_row(str(tick), format_timestamp(position), action, events)

        if target is not None:
            position = target.to_continuous()
        elif not engine.has_active_loop_or_playlist():
            break
        else:
            position += args.step

    console.print(table)


def _add_global_options(parser):
    """Add global options shared by all commands."""
    parser.add_argument("--store", default=None, help="Catalog store file (default: $ABLOOP_STORE or ~/.abloop/store.json)")
    parser.add_argument("--fps", type=float, default=30.0, help="Frame rate for timecodes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="abloop",
        description="Manage frame-accurate A-B loops and segment playlists",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  abloop timecode 12.5 --fps 24                       # seconds -> timecode
  abloop add-loop movie.mp4 00:00:05:00 00:00:10:00   # Save a loop
  abloop list                                         # Everything saved
  abloop simulate movie.mp4 --playlist 9c1e --end 60  # Dry-run a playlist
        """,
    )

    subparsers = parser.add_subparsers(dest="command")

    # timecode
    p_tc = subparsers.add_parser("timecode", help="Convert timecode <-> seconds")
    p_tc.add_argument("value", help="HH:MM:SS:FF or seconds")
    _add_global_options(p_tc)
    p_tc.set_defaults(func=cmd_timecode)

    # add-loop
    p_loop = subparsers.add_parser("add-loop", help="Save an A-B loop")
    p_loop.add_argument("video", help="Video identifier (path or URL)")
    p_loop.add_argument("point_a", help="Start timecode (HH:MM:SS:FF)")
    p_loop.add_argument("point_b", help="End timecode (HH:MM:SS:FF)")
    p_loop.add_argument("--name", default=None, help="Loop name")
    _add_global_options(p_loop)
    p_loop.set_defaults(func=cmd_add_loop)

    # add-playlist
    p_pl = subparsers.add_parser("add-playlist", help="Save a segment playlist")
    p_pl.add_argument("video", help="Video identifier (path or URL)")
    p_pl.add_argument("name", help="Playlist name")
    p_pl.add_argument(
        "-s", "--segment",
        dest="segments",
        nargs=2,
        action="append",
        required=True,
        metavar=("START", "END"),
        help="Segment timecodes (repeatable, played in the given order)",
    )
    p_pl.add_argument("--loop", action="store_true", help="Restart after the last segment")
    _add_global_options(p_pl)
    p_pl.set_defaults(func=cmd_add_playlist)

    # list
    p_list = subparsers.add_parser("list", help="Show saved loops and playlists")
    p_list.add_argument("video", nargs="?", default=None, help="Video identifier (all videos if omitted)")
    _add_global_options(p_list)
    p_list.set_defaults(func=cmd_list)

    # remove-loop / remove-playlist
    p_rl = subparsers.add_parser("remove-loop", help="Delete a loop")
    p_rl.add_argument("video", help="Video identifier")
    p_rl.add_argument("id", help="Loop id (a unique prefix is enough)")
    _add_global_options(p_rl)
    p_rl.set_defaults(func=cmd_remove_loop)

    p_rp = subparsers.add_parser("remove-playlist", help="Delete a segment playlist")
    p_rp.add_argument("video", help="Video identifier")
    p_rp.add_argument("id", help="Playlist id (a unique prefix is enough)")
    _add_global_options(p_rp)
    p_rp.set_defaults(func=cmd_remove_playlist)

    # clear / clear-all
    p_clear = subparsers.add_parser("clear", help="Delete everything saved for a video")
    p_clear.add_argument("video", help="Video identifier")
    _add_global_options(p_clear)
    p_clear.set_defaults(func=cmd_clear)

    p_clear_all = subparsers.add_parser("clear-all", help="Delete all saved loop data")
    p_clear_all.add_argument("--yes", action="store_true", help="Confirm deletion")
    _add_global_options(p_clear_all)
    p_clear_all.set_defaults(func=cmd_clear_all)

    # simulate
    p_sim = subparsers.add_parser("simulate", help="Dry-run time ticks through a loop or playlist")
    p_sim.add_argument("video", help="Video identifier")
    target = p_sim.add_mutually_exclusive_group(required=True)
    target.add_argument("--loop", help="Loop id to activate")
    target.add_argument("--playlist", help="Playlist id to activate")
    p_sim.add_argument("--start", type=float, default=0.0, help="Start position in seconds")
    p_sim.add_argument("--end", type=float, default=None, help="Stop once past this position")
    p_sim.add_argument("--step", type=float, default=1.0, help="Seconds between ticks")
    p_sim.add_argument("--max-ticks", type=int, default=50, help="Upper bound on ticks")
    _add_global_options(p_sim)
    p_sim.set_defaults(func=cmd_simulate)

    return parser


def main(argv: Optional[list[str]] = None):
    parser = build_parser()
    parsed = parser.parse_args(argv)

    if not hasattr(parsed, "func"):
        parser.print_help()
        sys.exit(1)

    _setup_logging(parsed.verbose)

    try:
        parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
