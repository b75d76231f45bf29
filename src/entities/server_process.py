from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional


class ProcessState(str, Enum):
    ABSENT = "absent"
    LAUNCHING = "launching"
    READY = "ready"


@dataclass
class ServerProcessHandle:
    """Represents the single inference server subprocess owned by a supervisor."""

    process: subprocess.Popen
    binary_path: Path
    config_path: Path
    exit_code: Optional[int] = None
    threads: list[threading.Thread] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.process.pid

    def is_running(self) -> bool:
        return self.process.poll() is None
