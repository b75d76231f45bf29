from __future__ import annotations

import asyncio
import subprocess
import threading
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from src.entities.server_process import ProcessState, ServerProcessHandle
from src.entities.supervisor_status import SupervisorStatus
from src.frameworks_drivers.config import SupervisorConfig
from src.frameworks_drivers.config_patcher import ConfigPatcher
from src.frameworks_drivers.port_reconciler import PortReconciler
from src.frameworks_drivers.process_launcher import ProcessLauncher
from src.frameworks_drivers.readiness_gate import ReadinessGate
from src.shared.error_utils import ErrorUtils
from src.shared.errors import (
    InvalidInputError,
    PortReclaimFailedError,
    ReadinessTimeoutError,
    SupervisorError,
)
from src.shared.logger import Logger
from src.shared.port_utils import PortUtils

logger = Logger.get(__name__)


class ModelServerSupervisor:

    """
    Owns the single inference server process: reclaims its port, points its
    config at a model, launches it and waits until it accepts connections.
    """

    def __init__(self, config: SupervisorConfig,
                 port_reconciler: Optional[PortReconciler] = None,
                 launcher: Optional[ProcessLauncher] = None,
                 readiness_gate: Optional[ReadinessGate] = None):
        self.config = config
        self.port_reconciler = port_reconciler or PortReconciler(config.host)
        self.launcher = launcher or ProcessLauncher()
        self.readiness_gate = readiness_gate or ReadinessGate(config.host)
        self._lock = threading.Lock()
        self._init_lock = asyncio.Lock()
        self._handle: ServerProcessHandle | None = None
        self._state = ProcessState.ABSENT
        self._model_path: Path | None = None
        self._last_exit_code: int | None = None
        self._disposables: list[Callable[[], None]] = []

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def handle(self) -> ServerProcessHandle | None:
        return self._handle

    def resolve_model_path(self, file_name: str) -> Path:
        return (self.config.user_data_dir.expanduser() / file_name).resolve()

    async def init_model(self, file_name: str | None) -> dict[str, Any]:
        """
        Load a model by (re)starting the inference server.

        Args:
            file_name: Model file name relative to the user data directory.

        Returns:
            An empty dict on success, otherwise an error payload carrying the
            failed stage. Supervisor errors are never raised.
        """
        pipeline: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("validate", lambda: self._validate(file_name)),
            ("recover", self._recover_existing),
            ("reconcile_port", self._reconcile_port),
            ("patch_config", lambda: self._patch_config(file_name)),
            ("launch", self._launch),
            ("wait_ready", self._wait_ready),
        ]

        # Concurrent callers run one after another so only one server is ever spawned
        async with self._init_lock:
            for stage, step in pipeline:
                try:
                    await step()
                except SupervisorError as e:
                    logger.error(f"init_model failed at stage '{stage}': {e}")
                    self._abandon_launch(stage, e)
                    return ErrorUtils.format_error_response(str(e), e.error_type, stage)
                except Exception as e:
                    logger.exception(f"Unexpected error at stage '{stage}'")
                    self._abandon_launch(stage, e)
                    return ErrorUtils.format_error_response(f"Internal error: {e}", "internal_error", stage)

        return {}

    async def _validate(self, file_name: str | None) -> None:
        if not file_name or not str(file_name).strip():
            raise InvalidInputError("Model not found, please download again.")

    async def _recover_existing(self) -> None:
        if self._handle is not None:
            logger.warning("A subprocess is already running. Attempt to kill then reinit.")
            self.kill_subprocess()

    async def _reconcile_port(self) -> None:
        await self.port_reconciler.ensure_free(
            self.config.port, self.config.free_poll_interval_ms, self.config.free_grace_timeout_ms,
        )

    async def _patch_config(self, file_name: str) -> None:
        model_path = self.resolve_model_path(file_name.strip())
        await asyncio.to_thread(ConfigPatcher.apply, self.config.config_path, model_path)
        self._model_path = model_path

    async def _launch(self) -> None:
        with self._lock:
            self._state = ProcessState.LAUNCHING
        handle = await asyncio.to_thread(
            self.launcher.spawn, self.config.binary_dir, self.config.config_path, on_exit=self._on_exit,
        )
        with self._lock:
            self._handle = handle

    async def _wait_ready(self) -> None:
        handle = self._handle
        is_alive = handle.is_running if handle is not None else None
        await self.readiness_gate.wait_until_up(
            self.config.port, self.config.ready_poll_interval_ms, self.config.ready_timeout_ms, is_alive,
        )
        with self._lock:
            if self._handle is handle:
                self._state = ProcessState.READY
        logger.info(f"Model {self._model_path} is being served on port {self.config.port}")

    def _abandon_launch(self, stage: str, error: Exception) -> None:
        """Settle the process state after a failed launch or readiness stage."""
        if stage not in ("launch", "wait_ready"):
            return
        if isinstance(error, ReadinessTimeoutError) and not self.config.kill_on_readiness_timeout:
            logger.warning("Leaving unready server running; the next init_model or kill_subprocess will stop it")
            return
        if self._handle is not None:
            self.kill_subprocess()
            return
        with self._lock:
            self._state = ProcessState.ABSENT

    def _on_exit(self, handle: ServerProcessHandle) -> None:
        with self._lock:
            self._last_exit_code = handle.exit_code
            if self._handle is handle:
                self._handle = None
                self._state = ProcessState.ABSENT

    def kill_subprocess(self) -> None:
        """
        Stop the server without waiting for it to exit. With no server held,
        whatever still listens on the well-known port is killed instead.
        """
        with self._lock:
            handle = self._handle
            self._handle = None
            self._state = ProcessState.ABSENT

        if handle is not None:
            handle.process.terminate()
            logger.info("Subprocess terminated.")
            return

        logger.info("No subprocess is currently running.")
        try:
            PortUtils.kill_port_process(self.config.port)
        except PortReclaimFailedError as e:
            logger.warning(f"Could not reclaim port {self.config.port}: {e}")

    @staticmethod
    def _terminate_process(process: subprocess.Popen, timeout: float) -> None:
        """Wait for a signalled process, killing it if it outlives the timeout."""
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def register_disposable(self, callback: Callable[[], None]) -> None:
        """Register a cleanup callback run by dispose()."""
        self._disposables.append(callback)

    def dispose(self) -> None:
        """Stop the server and release every registered resource."""
        handle = self._handle
        self.kill_subprocess()
        if handle is not None:
            self._terminate_process(handle.process, self.config.terminate_timeout)

        while self._disposables:
            callback = self._disposables.pop()
            try:
                callback()
            except Exception as e:
                logger.error(f"Dispose callback failed: {e}")

        logger.info("Model server supervisor disposed")

    def status(self) -> SupervisorStatus:
        handle = self._handle
        return SupervisorStatus(
            state=self._state,
            pid=handle.pid if handle is not None else None,
            port=self.config.port,
            model_path=str(self._model_path) if self._model_path else None,
            last_exit_code=self._last_exit_code,
            port_in_use=PortUtils.is_port_in_use(self.config.port, self.config.host),
        )
