"""
Lifecycle management for a locally hosted Ollama server.

The manager either attaches to a server that is already healthy (and then
never stops it) or spawns `ollama serve` itself, waits for it to become
ready, and owns it until shutdown.
"""

import enum
import logging
import os
import subprocess
import time
from typing import List, Optional

import httpx
from ollama import Client, ResponseError
from pydantic import ValidationError

from .errors import InitializationError, ShutdownError, TransportError

logger = logging.getLogger(__name__)

# Raised by the client when the port is unreachable, refuses the request,
# or answers with something that is not an Ollama payload
PROBE_ERRORS = (ResponseError, httpx.HTTPError, ConnectionError, ValidationError, ValueError)

DEFAULT_PORT = 11434
STARTUP_TIMEOUT = 15.0
POLL_INTERVAL = 0.15
PROBE_TIMEOUT = 1.0
STOP_TIMEOUT = 10.0


class ServerState(enum.Enum):
    NOT_STARTED = 'not_started'
    STARTING = 'starting'
    READY = 'ready'
    FAILED = 'failed'
    STOPPED = 'stopped'


class OllamaServer:
    """Start, health-check and stop a local Ollama backend."""

    def __init__(self, port: int = DEFAULT_PORT, *, binary: str = 'ollama', host: str = 'localhost',
                 startup_timeout: float = STARTUP_TIMEOUT, poll_interval: float = POLL_INTERVAL,
                 client: Optional[Client] = None):
        """
        Args:
            port: Port the backend listens on
            binary: Executable used to spawn the backend
            host: Host name used to reach the backend
            startup_timeout: Seconds to wait for a spawned backend to become ready
            poll_interval: Seconds between readiness probes
            client: Optional pre-built ollama client used for probes
        """
        self.port = port
        self.binary = binary
        self.base_url = f"http://{host}:{port}"
        self.startup_timeout = startup_timeout
        self.poll_interval = poll_interval
        self.process: Optional[subprocess.Popen] = None
        self.state = ServerState.NOT_STARTED
        self._client = client or Client(host=self.base_url, timeout=PROBE_TIMEOUT)

    @property
    def owns_process(self) -> bool:
        return self.process is not None

    @property
    def ready(self) -> bool:
        return self.state is ServerState.READY

    def is_healthy(self) -> bool:
        """Return True if the backend answers the status endpoint."""
        try:
            self._client.list()
        except PROBE_ERRORS as e:
            logger.debug(f"Health probe against {self.base_url} failed: {e}")
            return False
        return True

    def initialize(self) -> None:
        """Attach to a running backend or spawn one and wait until it is ready."""
        if self.is_healthy():
            logger.info(f"Ollama already running at {self.base_url}; attaching")
            self.state = ServerState.READY
            return

        self.state = ServerState.STARTING
        env = dict(os.environ)
        env['OLLAMA_HOST'] = f"0.0.0.0:{self.port}"
        logger.info(f"Starting {self.binary} serve on port {self.port}")
        try:
            self.process = subprocess.Popen(
                [self.binary, 'serve'],
                env=env,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            self.state = ServerState.FAILED
            raise InitializationError(f"Failed to start up Ollama: {e}") from e

        deadline = time.monotonic() + self.startup_timeout
        while time.monotonic() < deadline:
            if self.is_healthy():
                self.state = ServerState.READY
                logger.info(f"Ollama ready at {self.base_url} (pid {self.process.pid})")
                return
            exit_code = self.process.poll()
            if exit_code is not None:
                self.process = None
                self.state = ServerState.FAILED
                raise InitializationError(f"Failed to start up Ollama: process exited with code {exit_code}")
            time.sleep(self.poll_interval)

        logger.error(f"Ollama did not become ready within {self.startup_timeout:g}s")
        try:
            self._stop_process()
        except OSError as e:
            logger.error(f"Failed to stop unready Ollama process: {e}")
            self.process = None
        self.state = ServerState.FAILED
        raise InitializationError(f"Failed to start up Ollama: timeout ({self.startup_timeout:g}s)")

    def shutdown(self) -> None:
        """Stop the backend if, and only if, this manager spawned it."""
        if self.process is None:
            logger.debug("Shutdown requested but no owned Ollama process; leaving backend alone")
            return
        try:
            self._stop_process()
        except OSError as e:
            raise ShutdownError(f"Failed to stop Ollama: {e}") from e
        self.state = ServerState.STOPPED
        logger.info("Ollama stopped")

    def _stop_process(self) -> None:
        process = self.process
        if process is None:
            return
        process.terminate()
        try:
            process.wait(timeout=STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            logger.warning(f"Ollama (pid {process.pid}) ignored SIGTERM; killing")
            process.kill()
            process.wait()
        self.process = None

    def list_models(self) -> List[str]:
        """Names of the models installed on the backend."""
        try:
            response = self._client.list()
        except PROBE_ERRORS as e:
            raise TransportError(f"Failed to list models at {self.base_url}: {e}") from e
        return [model.model for model in response.models if model.model]

    def __enter__(self) -> 'OllamaServer':
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"OllamaServer({self.base_url!r}, state={self.state.value}, owned={self.owns_process})"
