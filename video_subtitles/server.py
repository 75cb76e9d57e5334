"""uvicorn-backed web server with explicit start and stop."""

import asyncio
import contextlib
import logging
import socket

import uvicorn

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL = 0.01


class ServerStartError(Exception):
    """Raised when the server stops before it starts accepting connections."""


class _Server(uvicorn.Server):
    """uvicorn server that leaves OS signal handling to the caller."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class WebApp:
    """Serves an ASGI app on a port until told to stop."""

    def __init__(self, app, host: str, port: int) -> None:
        self.app = app
        self.host = host
        self.port = port
        self.server = _Server(uvicorn.Config(app, host=host, port=port, log_config=None))
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """
        Bind the port and start serving in the background.

        Returns once the server accepts connections.

        Raises:
            OSError: If the port cannot be bound
            ServerStartError: If the server shut down during startup
        """
        logger.info(f"Starting web app on {self.host}:{self.port}")

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            raise
        # port 0 asks the OS for a free one
        self.port = sock.getsockname()[1]

        self._task = asyncio.create_task(self.server.serve(sockets=[sock]))

        while not self.server.started:
            if self._task.done():
                sock.close()
                error = None if self._task.cancelled() else self._task.exception()
                raise ServerStartError(f"web app stopped during startup on port {self.port}") from error
            await asyncio.sleep(READY_POLL_INTERVAL)

        logger.info(f"Web app listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop accepting connections and wait for in-flight requests to finish."""
        logger.info("Stopping web app")
        if self._task is None:
            return
        self.server.should_exit = True
        await self._task
        self._task = None
