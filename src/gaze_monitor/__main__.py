import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from gaze_monitor import __version__
from gaze_monitor.configs import AppSettings, load_check_config
from gaze_monitor.core import TrackerSession
from gaze_monitor.errors import ConfigError, ConnectError, RenderError
from gaze_monitor.render import load_image, radial_brush
from gaze_monitor.replay import default_output_dir, replay_log
from gaze_monitor.server import create_app, start_server
from gaze_monitor.sinks import JsonlLogSink

logger = logging.getLogger("gaze_monitor")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gaze-monitor", description="EyeTribe gaze monitor")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Stream from the tracker and serve heat-maps and region checks.")

    replay = commands.add_parser("replay", help="Render heat-maps from a recorded log file.")
    replay.add_argument("log", type=Path, help="Log file written by 'serve'.")
    replay.add_argument("--output-dir", type=Path, default=None, help="Defaults to a timestamped directory.")
    replay.add_argument("--image-config", type=Path, default=None, help="JSON map of page URL to background PNG.")
    return parser


async def serve(settings: AppSettings) -> None:
    """Runs until cancelled. Shuts down the HTTP runner, then the session, then the log."""
    sink: Optional[JsonlLogSink] = None
    if settings.log_sink.enabled:
        sink = JsonlLogSink(
            settings.log_sink.path,
            queue_size=settings.log_sink.queue_size,
            drop_when_full=settings.log_sink.drop_when_full,
        )
        await sink.start()

    session: Optional[TrackerSession] = None
    runner = None
    try:
        check_config = load_check_config(settings.check_config_path)
        session = await TrackerSession.open(
            settings.tracker.host,
            settings.tracker.port,
            settings.tracker.retention_s,
            check_config=check_config,
            brush_path=settings.heatmap.brush_path,
            brush_size=settings.heatmap.brush_size,
            sink=sink,
            default_window_ms=settings.default_window_ms,
        )
        await session.start_ingestion()

        if settings.http.enabled:
            app = create_app(session, settings, sink)
            runner = await start_server(app, settings.http)

        _install_reload_handler(session, settings.check_config_path)
        await asyncio.Event().wait()

    finally:
        logger.info("Shutdown sequence initiated.")
        if runner is not None:
            await runner.cleanup()
        if session is not None:
            await session.close()
        if sink is not None:
            await sink.close()


def _install_reload_handler(session: TrackerSession, path: Path) -> None:
    """SIGHUP re-reads the check config, where the platform has it."""
    if not hasattr(signal, "SIGHUP"):
        return

    def _reload() -> None:
        try:
            session.reload_check_config(path)
        except ConfigError as e:
            logger.error(f"Check config reload failed, keeping the current one: {e}")

    try:
        asyncio.get_running_loop().add_signal_handler(signal.SIGHUP, _reload)
    except (NotImplementedError, RuntimeError) as e:
        logger.debug(f"SIGHUP reload unavailable: {e}")


def replay(settings: AppSettings, args: argparse.Namespace) -> None:
    brush_path = settings.heatmap.brush_path
    brush = load_image(brush_path) if brush_path else radial_brush(settings.heatmap.brush_size)
    replay_log(
        args.log,
        args.output_dir or default_output_dir(),
        brush,
        image_config_path=args.image_config or settings.replay.image_config_path,
        width=settings.replay.width,
        height=settings.replay.height,
        cutoffs_s=settings.replay.cutoffs_s,
    )


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 1. Load Configuration
    try:
        settings = AppSettings()
    except ValidationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1

    # 2. Setup Logging
    settings.logging.apply()
    logger.info(f"Starting gaze-monitor v{__version__} ({args.command})")

    # 3. Run the command
    try:
        if args.command == "serve":
            asyncio.run(serve(settings))
        else:
            replay(settings, args)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    except (ConnectError, ConfigError, RenderError) as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
