from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from minihms.errors import PreconditionError
from minihms.protocols import SaslProtection

HMS_START_TIMEOUT = timedelta(seconds=60)
DEFAULT_NOTIFICATION_LOG_TTL = timedelta(seconds=86400)
DEFAULT_DEPENDENCIES: tuple[str, ...] = ("hadoop", "hive", "java")


def _default_bin_dir() -> Path:
    return Path(sys.executable).resolve().parent


@dataclass
class MiniHmsConfig:
    # directory holding `<name>-home` dependency dirs and the metastore plugin jar
    bin_dir: Path = field(default_factory=_default_bin_dir)
    # created on first start when None
    working_dir: Path | None = None
    host: str = "127.0.0.1"
    startup_timeout: timedelta = HMS_START_TIMEOUT
    poll_interval: timedelta = timedelta(milliseconds=100)
    stop_grace: timedelta = timedelta(seconds=30)
    hive_log_level: str = "WARN"
    plugin_jar: str = "hms-plugin.jar"
    service_name: str = "metastore"
    dependencies: tuple[str, ...] = DEFAULT_DEPENDENCIES


@dataclass
class RuntimeSettings:
    notification_log_ttl: timedelta = DEFAULT_NOTIFICATION_LOG_TTL


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    # Path("") collapses to "."
    if isinstance(value, Path):
        return str(value) == "."
    return not str(value).strip()


@dataclass(frozen=True)
class SecurityConfig:
    krb5_conf: Path
    service_principal: str
    keytab_file: Path
    protection: SaslProtection = SaslProtection.AUTHENTICATION

    @staticmethod
    def create(
        krb5_conf: str | Path,
        service_principal: str,
        keytab_file: str | Path,
        protection: SaslProtection | str,
    ) -> SecurityConfig:
        """
        Build a Kerberos configuration, rejecting partially specified values.
        """
        missing = [
            name
            for name, value in (
                ("krb5_conf", krb5_conf),
                ("service_principal", service_principal),
                ("keytab_file", keytab_file),
                ("protection", protection),
            )
            if _is_blank(value)
        ]
        if missing:
            raise PreconditionError(f"Kerberos configuration is incomplete, missing: {', '.join(missing)}")

        try:
            level = SaslProtection(str(protection).lower())
        except ValueError:
            raise PreconditionError(f"Unknown SASL protection level: {protection!r}") from None

        return SecurityConfig(
            krb5_conf=Path(krb5_conf),
            service_principal=service_principal,
            keytab_file=Path(keytab_file),
            protection=level,
        )
