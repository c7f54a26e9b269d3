from datetime import timedelta
from pathlib import Path

import psutil
import pytest

from minihms.config import MiniHmsConfig
from minihms.mini_hms import MiniHms
from tests.utils.factories import FAKE_HIVE, clean_environ, create_fake_bin_dir


@pytest.fixture()
def bin_dir(tmp_path: Path) -> Path:
    """Fixture providing dependency homes and a fake hive launcher."""
    return create_fake_bin_dir(tmp_path)


@pytest.fixture()
def hms_config(bin_dir: Path, tmp_path: Path) -> MiniHmsConfig:
    return MiniHmsConfig(
        bin_dir=bin_dir,
        working_dir=tmp_path / "hms",
        startup_timeout=timedelta(seconds=15),
        poll_interval=timedelta(milliseconds=50),
        stop_grace=timedelta(seconds=5),
    )


@pytest.fixture()
def hms_environ() -> dict[str, str]:
    return clean_environ()


@pytest.fixture()
def mini_hms(hms_config: MiniHmsConfig, hms_environ: dict[str, str]):
    """Function-scoped mini HMS, stopped at teardown regardless of test outcome."""
    hms = MiniHms(hms_config, environ=hms_environ)
    yield hms
    hms.stop()


@pytest.fixture(scope="session", autouse=True)
def cleanup_lingering_processes():
    """Kill any fake metastore that a failing test left behind."""

    yield

    for proc in psutil.process_iter(["cmdline"]):
        try:
            cmdline = proc.info["cmdline"] or []
            if str(FAKE_HIVE) in cmdline:
                proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
