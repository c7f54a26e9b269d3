"""Rendering of the Hadoop-style XML site files consumed by the metastore.

Rendering is pure: the same settings always produce the same bytes. Only
`write_site_files` touches the filesystem.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from xml.sax.saxutils import escape

from minihms.config import RuntimeSettings, SecurityConfig
from minihms.errors import ConfigWriteError
from minihms.logging_config import get_logger
from minihms.protocols import SaslProtection

log = get_logger(__name__)

HIVE_SITE = "hive-site.xml"
CORE_SITE = "core-site.xml"

TRANSACTIONAL_EVENT_LISTENERS = (
    "org.apache.hive.hcatalog.listener.DbNotificationListener",
    "org.apache.kudu.hive.metastore.KuduMetastorePlugin",
)


@dataclass(frozen=True)
class SiteFiles:
    hive_site: Path
    core_site: Path


def render_properties(properties: Iterable[tuple[str, str]]) -> str:
    lines = ["<configuration>"]
    for name, value in properties:
        lines += [
            "  <property>",
            f"    <name>{escape(name)}</name>",
            f"    <value>{escape(value)}</value>",
            "  </property>",
        ]
    lines.append("</configuration>")
    return "\n".join(lines) + "\n"


def _xml_bool(value: bool) -> str:
    return "true" if value else "false"


def render_hive_site(settings: RuntimeSettings, security: SecurityConfig | None, working_dir: Path) -> str:
    """Render hive-site.xml.

    Schema verification is disabled and auto-creation enabled so the metastore
    can start against a fresh embedded database without running schematool.
    """
    ttl_seconds = int(settings.notification_log_ttl.total_seconds())
    protection = security.protection if security is not None else SaslProtection.AUTHENTICATION

    return render_properties([
        ("hive.metastore.transactional.event.listeners", ",".join(TRANSACTIONAL_EVENT_LISTENERS)),
        ("datanucleus.schema.autoCreateAll", "true"),
        ("hive.metastore.schema.verification", "false"),
        ("hive.metastore.warehouse.dir", f"file://{working_dir}/warehouse/"),
        ("javax.jdo.option.ConnectionURL", f"jdbc:derby:memory:{working_dir}/metadb;create=true"),
        ("hive.metastore.event.db.listener.timetolive", f"{ttl_seconds}s"),
        ("hive.metastore.sasl.enabled", _xml_bool(security is not None)),
        ("hive.metastore.kerberos.keytab.file", str(security.keytab_file) if security else ""),
        ("hive.metastore.kerberos.principal", security.service_principal if security else ""),
        ("hadoop.rpc.protection", str(protection)),
    ])


def render_core_site(security: SecurityConfig | None) -> str:
    # Hadoop's UGI only looks up hadoop.security.authentication in the files
    # it knows about, so this cannot live in hive-site.xml.
    return render_properties([
        ("hadoop.security.authentication", "kerberos" if security is not None else "simple"),
    ])


def _write(path: Path, contents: str) -> None:
    try:
        path.write_text(contents, encoding="utf-8")
    except OSError as e:
        raise ConfigWriteError(f"failed to write {path.name} to {path.parent}: {e}") from e


def write_site_files(working_dir: Path, settings: RuntimeSettings, security: SecurityConfig | None) -> SiteFiles:
    files = SiteFiles(hive_site=working_dir / HIVE_SITE, core_site=working_dir / CORE_SITE)

    _write(files.hive_site, render_hive_site(settings, security, working_dir))
    _write(files.core_site, render_core_site(security))

    log.debug(
        "Wrote metastore site files",
        working_dir=str(working_dir),
        kerberos=security is not None,
    )
    return files
