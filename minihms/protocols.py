from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import NamedTuple, Protocol


class HmsState(StrEnum):
    """Externally observable state of a mini HMS instance."""
    STOPPED = "stopped"
    RUNNING = "running"
    PAUSED = "paused"


class SaslProtection(StrEnum):
    """SASL quality-of-protection levels, named the way Hadoop spells them."""
    AUTHENTICATION = "authentication"
    INTEGRITY = "integrity"
    PRIVACY = "privacy"


class ProcessSignal(StrEnum):
    """Semantic control operations understood by a process-control adapter."""
    TERMINATE = "terminate"
    SUSPEND = "suspend"
    CONTINUE = "continue"
    ABORT = "abort"
    KILL = "kill"


class HostPort(NamedTuple):
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class HmsStatus:
    state: HmsState
    pid: int | None
    port: int
    working_dir: Path | None
    started_at: datetime | None


class ProcessControl(Protocol):
    """Capability interface over a spawned child process."""

    @property
    def pid(self) -> int:
        ...

    def returncode(self) -> int | None:
        ...

    def is_running(self) -> bool:
        ...

    def suspend(self) -> None:
        ...

    def resume(self) -> None:
        ...

    def terminate(self) -> None:
        ...

    def abort(self) -> None:
        ...

    def kill_and_wait(self, kind: ProcessSignal = ProcessSignal.TERMINATE, grace_seconds: float = 30.0) -> int | None:
        """Deliver `kind`, then block until the process has been reaped.

        Returns the exit code, or None if the process was already gone.
        """
        ...

    def listening_ports(self) -> set[int]:
        ...
