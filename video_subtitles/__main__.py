"""Process entry point: python -m video_subtitles [--port PORT]"""

import argparse
import asyncio
import signal
import sys

from . import storage
from .logging_config import setup_logging
from .server import ServerStartError, WebApp

EXIT_MISSING_CREDENTIALS = 1
EXIT_DIRECTORIES = 2
EXIT_START_FAILED = 3


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate subtitles for uploaded videos.")
    parser.add_argument("--port", type=int, default=None, help="port to listen (overrides PORT)")
    return parser.parse_args(argv)


async def serve(web_app: WebApp) -> None:
    """Run the web app until SIGINT or SIGTERM, then shut it down gracefully."""
    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_requested.set)

    await web_app.start()
    try:
        await stop_requested.wait()
    finally:
        await web_app.stop()


def main(argv=None) -> int:
    args = parse_args(argv)

    # Builds the app and its collaborators from the environment
    from .main import app, settings

    if args.port is not None:
        settings.port = args.port

    logger = setup_logging(settings.log_level, settings.port)

    if not settings.has_aws_credentials():
        logger.error("AWS credentials not set: define AWS_PROFILE or AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY")
        return EXIT_MISSING_CREDENTIALS

    for directory in (settings.tmp_dir, settings.subtitles_dir):
        try:
            storage.ensure_directory(directory)
        except OSError as e:
            logger.error(f"Could not create directory: dir={directory} error={e}")
            return EXIT_DIRECTORIES

    try:
        asyncio.run(serve(WebApp(app, settings.host, settings.port)))
    except (OSError, ServerStartError) as e:
        logger.error(f"Could not start web app: error={e}")
        return EXIT_START_FAILED

    logger.info("Web app stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
