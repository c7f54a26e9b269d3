from __future__ import annotations

import os
import tempfile
import threading
import time
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

from minihms.config import MiniHmsConfig, RuntimeSettings, SecurityConfig
from minihms.environment import resolve_environment
from minihms.errors import ConfigWriteError, PreconditionError, fail_gracefully
from minihms.logging_config import get_logger
from minihms.process import HmsProcess, build_command, build_process_env, spawn_process
from minihms.protocols import HmsState, HmsStatus, HostPort, ProcessSignal, SaslProtection
from minihms.readiness import wait_for_tcp_bind
from minihms.site_config import write_site_files

log = get_logger(__name__)

HMS_LOG = "hms.log"
ABORT_GRACE_SECONDS = 2.0


class MiniHms:
    """A Hive Metastore process managed for the duration of a test.

    The instance owns at most one child process. Stopping it keeps the port,
    runtime settings and Kerberos configuration, so a later `start()` comes
    back on the same port.
    """

    def __init__(
        self,
        config: MiniHmsConfig | None = None,
        environ: Mapping[str, str] | None = None,
        port: int = 0,
    ):
        if not 0 <= port <= 65535:
            raise ValueError(f"Invalid port: {port}")

        self.config = config if config is not None else MiniHmsConfig()
        # read on every start, so changes between runs are picked up
        self._environ: Mapping[str, str] = environ if environ is not None else os.environ
        self._settings = RuntimeSettings()
        self._security: SecurityConfig | None = None

        self._lock = threading.RLock()
        self._process: HmsProcess | None = None
        self._state = HmsState.STOPPED
        self._port = port
        self._working_dir: Path | None = None
        self._started_at: datetime | None = None
        self._has_started = False

    def __enter__(self) -> MiniHms:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def __del__(self):
        self._cleanup()

    # ----------------
    # -- Properties --
    # ----------------
    @property
    def state(self) -> HmsState:
        return self._state

    @property
    def port(self) -> int:
        return self._port

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def working_dir(self) -> Path | None:
        return self._working_dir

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def security(self) -> SecurityConfig | None:
        return self._security

    @property
    def notification_log_ttl(self) -> timedelta:
        return self._settings.notification_log_ttl

    @property
    def uris(self) -> str:
        return f"thrift://{self.address()}"

    def address(self) -> HostPort:
        return HostPort(self.config.host, self._port)

    def status(self) -> HmsStatus:
        return HmsStatus(
            state=self._state,
            pid=self.pid,
            port=self._port,
            working_dir=self._working_dir,
            started_at=self._started_at,
        )

    # -------------------
    # -- Configuration --
    # -------------------
    def enable_kerberos(
        self,
        krb5_conf: str | Path,
        service_principal: str,
        keytab_file: str | Path,
        protection: SaslProtection | str,
    ) -> None:
        with self._lock:
            if self._has_started or self._process is not None:
                raise PreconditionError("Kerberos must be enabled before the Hive Metastore is first started")
            if self._security is not None:
                raise PreconditionError("Kerberos is already enabled for this Hive Metastore")

            self._security = SecurityConfig.create(krb5_conf, service_principal, keytab_file, protection)
            log.info(
                "Kerberos enabled",
                principal=service_principal,
                protection=str(self._security.protection),
            )

    def set_notification_log_ttl(self, ttl: timedelta) -> None:
        with self._lock:
            if self._state != HmsState.STOPPED:
                raise PreconditionError(f"Notification log TTL can only be changed while stopped, state is {self._state}")
            if ttl.total_seconds() <= 0:
                raise PreconditionError(f"Notification log TTL must be positive, got {ttl}")
            # rendered as whole seconds
            if ttl % timedelta(seconds=1):
                raise PreconditionError(f"Notification log TTL must be a whole number of seconds, got {ttl}")

            self._settings.notification_log_ttl = ttl

    # ---------------
    # -- Lifecycle --
    # ---------------
    def start(self) -> None:
        with self._lock:
            if self._state != HmsState.STOPPED:
                raise PreconditionError(f"Hive Metastore is already {self._state}")

            timeout = self.config.startup_timeout.total_seconds()
            start = time.monotonic()
            log.info("Starting Hive Metastore", port=self._port)

            resolved = resolve_environment(self.config.bin_dir, self._environ, self.config.dependencies)
            working_dir = self._ensure_working_dir()
            write_site_files(working_dir, self._settings, self._security)

            env = build_process_env(self._environ, resolved, self.config, working_dir, self._security)
            args = build_command(resolved, self.config, self._port)
            process = spawn_process(args, env, cwd=working_dir, log_file=working_dir / HMS_LOG)
            self._has_started = True

            try:
                bound = wait_for_tcp_bind(
                    process,
                    self._port,
                    timeout=max(timeout - (time.monotonic() - start), 0.0),
                    poll_interval=self.config.poll_interval.total_seconds(),
                )
            except BaseException:
                log.warning("Hive Metastore failed to start, aborting", pid=process.pid, log_file=str(working_dir / HMS_LOG))
                self._abort(process)
                raise

            self._process = process
            self._port = bound
            self._state = HmsState.RUNNING
            self._started_at = datetime.now(UTC)

            elapsed = time.monotonic() - start
            if elapsed > timeout / 2:
                log.warning("Starting Hive Metastore took longer than expected", elapsed_s=round(elapsed, 2))

            log.info("Hive Metastore started", pid=process.pid, port=bound, elapsed_s=round(elapsed, 2))

    def stop(self) -> None:
        with self._lock:
            if self._process is None:
                return

            process, self._process = self._process, None
            self._state = HmsState.STOPPED
            log.info("Stopping Hive Metastore", pid=process.pid)

            exit_code = process.kill_and_wait(ProcessSignal.TERMINATE, self.config.stop_grace.total_seconds())
            log.info("Hive Metastore stopped", pid=process.pid, exit_code=exit_code)

    def pause(self) -> None:
        with self._lock:
            if self._state != HmsState.RUNNING or self._process is None:
                raise PreconditionError(f"Cannot pause a Hive Metastore that is {self._state}")

            log.info("Pausing Hive Metastore", pid=self._process.pid)
            self._process.suspend()
            self._state = HmsState.PAUSED

    def resume(self) -> None:
        with self._lock:
            if self._state != HmsState.PAUSED or self._process is None:
                raise PreconditionError(f"Cannot resume a Hive Metastore that is {self._state}")

            log.info("Resuming Hive Metastore", pid=self._process.pid)
            self._process.resume()
            self._state = HmsState.RUNNING

    # -------------
    # -- Helpers --
    # -------------
    def _ensure_working_dir(self) -> Path:
        if self._working_dir is not None:
            return self._working_dir

        try:
            if self.config.working_dir is not None:
                self.config.working_dir.mkdir(parents=True, exist_ok=True)
                working_dir = self.config.working_dir.resolve()
            else:
                working_dir = Path(tempfile.mkdtemp(prefix="minihms-"))
        except OSError as e:
            raise ConfigWriteError(f"failed to create working directory: {e}") from e

        self._working_dir = working_dir
        log.debug("Created working directory", working_dir=str(working_dir))
        return working_dir

    @fail_gracefully(log)
    def _abort(self, process: HmsProcess) -> None:
        # a JVM answers SIGQUIT with a thread dump, then gets killed after the grace period
        process.kill_and_wait(ProcessSignal.ABORT, ABORT_GRACE_SECONDS)

    @fail_gracefully(log)
    def _cleanup(self) -> None:
        if getattr(self, "_process", None) is not None:
            self.stop()
