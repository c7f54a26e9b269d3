from __future__ import annotations

import signal
import subprocess
from collections.abc import Mapping
from pathlib import Path
from subprocess import DEVNULL

import psutil

from minihms.config import MiniHmsConfig, SecurityConfig
from minihms.environment import ResolvedEnvironment, home_env_var
from minihms.errors import SignalError, SpawnError
from minihms.logging_config import get_logger
from minihms.protocols import ProcessSignal

log = get_logger(__name__)

POSIX_SIGNALS: dict[ProcessSignal, signal.Signals] = {
    ProcessSignal.TERMINATE: signal.SIGTERM,
    ProcessSignal.SUSPEND: signal.SIGSTOP,
    ProcessSignal.CONTINUE: signal.SIGCONT,
    ProcessSignal.ABORT: signal.SIGQUIT,
    ProcessSignal.KILL: signal.SIGKILL,
}

_ACTIONS: dict[ProcessSignal, str] = {
    ProcessSignal.TERMINATE: "stop",
    ProcessSignal.SUSPEND: "pause",
    ProcessSignal.CONTINUE: "unpause",
    ProcessSignal.ABORT: "abort",
    ProcessSignal.KILL: "kill",
}


# ============================================================================
# Command and Environment
# ============================================================================


def build_command(resolved: ResolvedEnvironment, config: MiniHmsConfig, port: int) -> list[str]:
    return [
        str(resolved.home("hive") / "bin" / "hive"),
        "--service", config.service_name,
        "-v",
        "-p", str(port),
    ]


def build_process_env(
    base_env: Mapping[str, str],
    resolved: ResolvedEnvironment,
    config: MiniHmsConfig,
    working_dir: Path,
    security: SecurityConfig | None,
) -> dict[str, str]:
    java_tool_options = f"-Dhive.log.level={config.hive_log_level} -Dhive.root.logger=console"
    if security is not None:
        java_tool_options += f" -Djava.security.krb5.conf={security.krb5_conf}"

    env = dict(base_env)
    env.update({home_env_var(name): str(path) for name, path in resolved.homes.items()})
    env.update({
        # comma-separated list of extra jars for the metastore classpath
        "HIVE_AUX_JARS_PATH": str(resolved.bin_dir / config.plugin_jar),
        "HIVE_CONF_DIR": str(working_dir),
        "HADOOP_CONF_DIR": str(working_dir),
        "JAVA_TOOL_OPTIONS": java_tool_options,
    })
    return env


# ============================================================================
# Process Handle
# ============================================================================


class HmsProcess:
    def __init__(self, proc: psutil.Popen):
        self._proc = proc

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def psutil(self) -> psutil.Process:
        return self._proc

    # ------------------
    # -- Status Checks --
    # ------------------
    def returncode(self) -> int | None:
        # poll() reaps the child if it has exited
        return self._proc.poll()

    def is_running(self) -> bool:
        return self.returncode() is None

    def children(self) -> list[psutil.Process]:
        try:
            return self._proc.children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return []

    def listening_ports(self) -> set[int]:
        """TCP ports in LISTEN state owned by the process or its descendants."""
        ports: set[int] = set()
        for proc in [self._proc, *self.children()]:
            try:
                conns = proc.net_connections(kind="tcp")
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

            ports.update(c.laddr.port for c in conns if c.status == psutil.CONN_LISTEN and c.laddr)

        return ports

    # -------------
    # -- Signals --
    # -------------
    def send(self, kind: ProcessSignal) -> None:
        try:
            self._proc.send_signal(POSIX_SIGNALS[kind])
        except psutil.NoSuchProcess:
            log.debug("Process already exited, signal not delivered", pid=self.pid, signal=str(kind))
        except (psutil.AccessDenied, OSError) as e:
            raise SignalError(f"failed to {_ACTIONS[kind]} the Hive Metastore process (pid {self.pid}): {e}") from e

    def suspend(self) -> None:
        self.send(ProcessSignal.SUSPEND)

    def resume(self) -> None:
        self.send(ProcessSignal.CONTINUE)

    def terminate(self) -> None:
        self.send(ProcessSignal.TERMINATE)

    def abort(self) -> None:
        self.send(ProcessSignal.ABORT)

    def force_kill(self) -> None:
        self.send(ProcessSignal.KILL)

    def kill_and_wait(self, kind: ProcessSignal = ProcessSignal.TERMINATE, grace_seconds: float = 30.0) -> int | None:
        if self.returncode() is not None:
            return self.returncode()

        self.send(kind)
        if kind is not ProcessSignal.KILL:
            # a suspended process only acts on a pending signal once continued
            self.send(ProcessSignal.CONTINUE)

        try:
            return self._proc.wait(timeout=grace_seconds)
        except psutil.TimeoutExpired:
            log.warning(
                "Process did not exit in time, escalating to kill",
                pid=self.pid,
                signal=str(kind),
                grace_s=grace_seconds,
            )
        except (psutil.Error, ChildProcessError) as e:
            raise SignalError(f"failed to wait for the Hive Metastore process (pid {self.pid}) to exit: {e}") from e

        self.force_kill()
        try:
            return self._proc.wait()
        except (psutil.Error, ChildProcessError) as e:
            raise SignalError(f"failed to wait for the Hive Metastore process (pid {self.pid}) to exit: {e}") from e


def spawn_process(args: list[str], env: Mapping[str, str], cwd: Path, log_file: Path) -> HmsProcess:
    """Start the process and return once the OS has created it.

    Output of the child is appended to `log_file`; readiness is not awaited.
    """
    try:
        with log_file.open("ab") as output:
            proc = psutil.Popen(
                args,
                env=dict(env),
                cwd=cwd,
                stdin=DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
            )
    except OSError as e:
        raise SpawnError(f"failed to start {args[0]}: {e}") from e

    log.info("Spawned process", pid=proc.pid, executable=args[0], log_file=str(log_file))
    return HmsProcess(proc)
