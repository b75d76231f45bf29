from __future__ import annotations

import platform
import subprocess
import threading
from pathlib import Path
from typing import IO, Callable, Iterator, Optional

from src.entities.server_process import ServerProcessHandle
from src.shared.errors import LaunchFailedError, UnsupportedPlatformError
from src.shared.logger import Logger
from src.shared.protocols import LogSinkProtocol

logger = Logger.get(__name__)

# (OS family, normalized architecture) -> server binary shipped in binary_dir
BINARY_TABLE: dict[tuple[str, str], str] = {
    ("Windows", "amd64"): "nitro_windows_amd64.exe",
    ("Darwin", "arm64"): "nitro_mac_arm64",
    ("Darwin", "amd64"): "nitro_mac_amd64",
    ("Linux", "amd64"): "nitro_linux_amd64_cuda",
}

ARCH_ALIASES: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def iter_lines(stream: IO[bytes]) -> Iterator[str]:
    """Lazily yield decoded lines from a subprocess pipe until EOF."""
    try:
        for raw in iter(stream.readline, b""):
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
    finally:
        stream.close()


class LoggingSink:
    """Forwards server output to the standard logging module."""

    def __init__(self, name: str = "nitro"):
        self.logger = Logger.get(name)

    def write(self, stream: str, line: str) -> None:
        if stream == "stderr":
            self.logger.warning(f"stderr: {line}")
        else:
            self.logger.info(f"stdout: {line}")


class ProcessLauncher:
    """
    Starts the platform-specific inference server binary.
    """

    def __init__(self, sink: Optional[LogSinkProtocol] = None):
        self.sink = sink or LoggingSink()

    @staticmethod
    def resolve_binary_name(system: Optional[str] = None, machine: Optional[str] = None) -> str:
        """
        Pick the server binary for an OS/architecture pair.

        Args:
            system: OS family as reported by platform.system(); defaults to the host.
            machine: CPU architecture as reported by platform.machine(); defaults to the host.

        Returns:
            The binary file name.

        Raises:
            UnsupportedPlatformError: If no binary is built for the pair.
        """
        system = system or platform.system()
        machine = machine or platform.machine()
        arch = ARCH_ALIASES.get(machine.lower(), machine.lower())
        try:
            return BINARY_TABLE[(system, arch)]
        except KeyError:
            raise UnsupportedPlatformError(f"No server binary available for {system}/{machine}") from None

    def _pump(self, name: str, stream: Optional[IO[bytes]]) -> None:
        if stream is None:
            return
        for line in iter_lines(stream):
            self.sink.write(name, line)

    def _watch(self, handle: ServerProcessHandle, on_exit: Optional[Callable[[ServerProcessHandle], None]]) -> None:
        handle.exit_code = handle.process.wait()
        logger.info(f"child process exited with code {handle.exit_code}")
        if on_exit is not None:
            on_exit(handle)

    def spawn(self, binary_dir: Path, config_path: Path,
              on_exit: Optional[Callable[[ServerProcessHandle], None]] = None,
              system: Optional[str] = None, machine: Optional[str] = None) -> ServerProcessHandle:
        """
        Launch `<binary> <config_path>` with binary_dir as the working directory.

        Output is forwarded line by line to the sink; on_exit is called from a
        watcher thread once the process ends.

        Raises:
            UnsupportedPlatformError: If no binary is mapped for the platform.
            LaunchFailedError: If the OS refuses to start the binary.
        """
        binary_dir = Path(binary_dir).resolve()
        binary_path = binary_dir / self.resolve_binary_name(system, machine)

        logger.info(f"Starting {binary_path} with config {config_path}")
        try:
            process = subprocess.Popen(
                [str(binary_path), str(config_path)],
                cwd=str(binary_dir),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise LaunchFailedError(f"Failed to start {binary_path}: {e}") from e

        handle = ServerProcessHandle(process=process, binary_path=binary_path, config_path=Path(config_path))
        handle.threads = [
            threading.Thread(target=self._pump, args=("stdout", process.stdout), daemon=True),
            threading.Thread(target=self._pump, args=("stderr", process.stderr), daemon=True),
            threading.Thread(target=self._watch, args=(handle, on_exit), daemon=True),
        ]
        for thread in handle.threads:
            thread.start()

        logger.info(f"Started server subprocess with pid {handle.pid}")
        return handle
