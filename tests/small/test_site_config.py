from datetime import timedelta
from pathlib import Path

import pytest

from minihms.config import RuntimeSettings, SecurityConfig
from minihms.errors import ConfigWriteError
from minihms.protocols import SaslProtection
from minihms.site_config import (
    CORE_SITE,
    HIVE_SITE,
    render_core_site,
    render_hive_site,
    render_properties,
    write_site_files,
)

WORKING_DIR = Path("/tmp/hms")

SIMPLE_HIVE_SITE = """\
<configuration>
  <property>
    <name>hive.metastore.transactional.event.listeners</name>
    <value>org.apache.hive.hcatalog.listener.DbNotificationListener,org.apache.kudu.hive.metastore.KuduMetastorePlugin</value>
  </property>
  <property>
    <name>datanucleus.schema.autoCreateAll</name>
    <value>true</value>
  </property>
  <property>
    <name>hive.metastore.schema.verification</name>
    <value>false</value>
  </property>
  <property>
    <name>hive.metastore.warehouse.dir</name>
    <value>file:///tmp/hms/warehouse/</value>
  </property>
  <property>
    <name>javax.jdo.option.ConnectionURL</name>
    <value>jdbc:derby:memory:/tmp/hms/metadb;create=true</value>
  </property>
  <property>
    <name>hive.metastore.event.db.listener.timetolive</name>
    <value>86400s</value>
  </property>
  <property>
    <name>hive.metastore.sasl.enabled</name>
    <value>false</value>
  </property>
  <property>
    <name>hive.metastore.kerberos.keytab.file</name>
    <value></value>
  </property>
  <property>
    <name>hive.metastore.kerberos.principal</name>
    <value></value>
  </property>
  <property>
    <name>hadoop.rpc.protection</name>
    <value>authentication</value>
  </property>
</configuration>
"""

SIMPLE_CORE_SITE = """\
<configuration>
  <property>
    <name>hadoop.security.authentication</name>
    <value>simple</value>
  </property>
</configuration>
"""


@pytest.fixture()
def security() -> SecurityConfig:
    return SecurityConfig(
        krb5_conf=Path("/etc/krb5.conf"),
        service_principal="hive/127.0.0.1@KRBTEST.COM",
        keytab_file=Path("/keytabs/hive.keytab"),
        protection=SaslProtection.PRIVACY,
    )


# ============================================================================
# Rendering
# ============================================================================


def test_render_hive_site_simple_golden():
    """
    Default settings without Kerberos render the expected hive-site.xml
    """
    assert render_hive_site(RuntimeSettings(), None, WORKING_DIR) == SIMPLE_HIVE_SITE


def test_render_core_site_simple_golden():
    """
    Without Kerberos core-site.xml selects simple authentication
    """
    assert render_core_site(None) == SIMPLE_CORE_SITE


def test_render_is_deterministic(security: SecurityConfig):
    """
    Identical inputs produce byte-identical output
    """
    settings = RuntimeSettings(notification_log_ttl=timedelta(minutes=5))
    first = render_hive_site(settings, security, WORKING_DIR)
    second = render_hive_site(settings, security, WORKING_DIR)
    assert first.encode() == second.encode()


def test_render_hive_site_ttl_in_seconds():
    """
    Notification log TTL is rendered in whole seconds with an `s` suffix
    """
    settings = RuntimeSettings(notification_log_ttl=timedelta(hours=1))
    text = render_hive_site(settings, None, WORKING_DIR)
    assert "<value>3600s</value>" in text


def test_render_hive_site_kerberos(security: SecurityConfig):
    """
    Kerberos settings populate the SASL block
    """
    text = render_hive_site(RuntimeSettings(), security, WORKING_DIR)

    assert "<name>hive.metastore.sasl.enabled</name>\n    <value>true</value>" in text
    assert "<value>/keytabs/hive.keytab</value>" in text
    assert "<value>hive/127.0.0.1@KRBTEST.COM</value>" in text
    assert "<name>hadoop.rpc.protection</name>\n    <value>privacy</value>" in text


def test_render_core_site_kerberos(security: SecurityConfig):
    """
    Kerberos mode is selected in core-site.xml
    """
    text = render_core_site(security)
    assert "<value>kerberos</value>" in text
    assert "simple" not in text


def test_render_properties_escapes_values():
    """
    Values are XML-escaped
    """
    text = render_properties([("key", "a<b&c")])
    assert "<value>a&lt;b&amp;c</value>" in text


# ============================================================================
# Writing
# ============================================================================


def test_write_site_files(tmp_path: Path, security: SecurityConfig):
    """
    Both files are written into the working directory
    """
    files = write_site_files(tmp_path, RuntimeSettings(), security)

    assert files.hive_site == tmp_path / HIVE_SITE
    assert files.core_site == tmp_path / CORE_SITE
    assert files.hive_site.read_text() == render_hive_site(RuntimeSettings(), security, tmp_path)
    assert files.core_site.read_text() == render_core_site(security)


def test_write_site_files_unwritable_dir(tmp_path: Path):
    """
    A working directory that cannot be written raises ConfigWriteError
    """
    missing = tmp_path / "does-not-exist"

    with pytest.raises(ConfigWriteError, match=HIVE_SITE):
        write_site_files(missing, RuntimeSettings(), None)
