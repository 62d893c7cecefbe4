"""Ephemeral HTTP listener for a mock server.

The socket is bound to an OS-assigned port before hypercorn starts, so the
base URL is known as soon as ``start()`` returns and can be handed to the
other servers of a scenario through ``get_url``.
"""

import asyncio
import logging
import os
import socket
from typing import Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from ..errors import ScenarioStateError, ServerStartError
from ..shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ServerLifecycle:
    """Owns one listening socket and the hypercorn task serving it."""

    def __init__(self, name: str = "server", settings: Optional[Settings] = None):
        """Initialize an unbound lifecycle.

        Args:
            name: Label used in log messages
            settings: Engine settings (defaults to the cached settings)
        """
        self.name = name
        self.settings = settings or get_settings()
        self.port: Optional[int] = None
        self._base_url: Optional[str] = None
        self._sock: Optional[socket.socket] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_url(self) -> str:
        """Base URL of the bound listener.

        Safe to pass around as a deferred accessor before ``start()``; calling
        it before the socket is bound raises ScenarioStateError.
        """
        if self._base_url is None:
            raise ScenarioStateError(f"{self.name} has no URL before it is started")
        return self._base_url

    def _bind(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.settings.bind_host, 0))
            sock.listen(128)
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise ServerStartError(f"{self.name}: cannot bind {self.settings.bind_host}: {e}") from e
        return sock

    def _hypercorn_config(self, fd: int) -> HypercornConfig:
        config = HypercornConfig()
        config.bind = [f"fd://{fd}"]
        config.accesslog = None
        config.errorlog = logging.getLogger("hypercorn.error")
        config.graceful_timeout = self.settings.graceful_timeout
        return config

    async def start(self, app) -> str:
        """Bind an ephemeral port and serve ``app`` on it.

        Args:
            app: ASGI application

        Returns:
            The base URL, e.g. ``http://127.0.0.1:54321``
        """
        if self.is_running:
            raise ScenarioStateError(f"{self.name} is already running")

        self._sock = self._bind()
        self.port = self._sock.getsockname()[1]

        # hypercorn takes ownership of the duplicate and closes it on shutdown
        config = self._hypercorn_config(os.dup(self._sock.fileno()))
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(serve(app, config, shutdown_trigger=self._shutdown_event.wait))

        await asyncio.sleep(0)
        if self._task.done():
            error = self._task.exception()
            self._close_socket()
            raise ServerStartError(f"{self.name} failed to start: {error}")

        self._base_url = f"http://{self.settings.public_host}:{self.port}"
        logger.debug(f"{self.name} listening on {self._base_url}")
        return self._base_url

    async def stop(self) -> None:
        """Shut the server down and release its socket. Safe to call twice."""
        if self._task is not None:
            if self._shutdown_event is not None:
                self._shutdown_event.set()
            try:
                await asyncio.wait_for(self._task, timeout=self.settings.shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} did not shut down within {self.settings.shutdown_timeout}s")
            except Exception as e:
                logger.error(f"{self.name} crashed while serving: {e}")
            self._task = None
            self._shutdown_event = None
            logger.debug(f"{self.name} stopped")
        self._close_socket()

    def _close_socket(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
