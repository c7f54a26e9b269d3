from __future__ import annotations

import time
from typing import Any

import backoff

from minihms.errors import SpawnError, StartTimeoutError
from minihms.logging_config import get_logger
from minihms.protocols import ProcessControl

log = get_logger(__name__)


def _pick_port(ports: set[int], port: int) -> int | None:
    if port != 0:
        return port if port in ports else None

    # an ephemeral request adopts the lowest port the process listens on
    return min(ports) if ports else None


def wait_for_tcp_bind(
    process: ProcessControl,
    port: int,
    timeout: float,
    poll_interval: float = 0.1,
) -> int:
    """
    Block until `process` listens on `port` and return the bound port.

    A `port` of 0 accepts whichever TCP port the process binds first. Raises
    StartTimeoutError once `timeout` seconds have elapsed, and SpawnError if
    the process exits while it is being waited on.
    """
    start = time.monotonic()

    def _on_backoff(details: Any) -> None:
        log.debug(
            "Waiting for process to bind",
            pid=process.pid,
            port=port,
            tries=details["tries"],
            elapsed_s=round(details["elapsed"], 2),
        )

    @backoff.on_predicate(
        backoff.constant,
        interval=poll_interval,
        max_time=timeout,
        jitter=None,
        on_backoff=_on_backoff,
        logger=None,
    )
    def _poll() -> int | None:
        if not process.is_running():
            raise SpawnError(
                f"process {process.pid} exited with code {process.returncode()} before binding port {port or '(any)'}",
            )

        return _pick_port(process.listening_ports(), port)

    bound = _poll()
    if bound is None:
        raise StartTimeoutError(
            f"timed out after {timeout:.1f}s waiting for process {process.pid} to bind port {port or '(any)'}",
        )

    log.info("Process bound port", pid=process.pid, port=bound, elapsed_s=round(time.monotonic() - start, 2))
    return bound
