import json
import os
import stat
import sys
from pathlib import Path
from typing import Any

FAKE_HIVE = Path(__file__).resolve().parent.parent / "fixtures" / "fake_hive.py"
DEPENDENCIES: tuple[str, ...] = ("hadoop", "hive", "java")


def create_fake_bin_dir(root: Path) -> Path:
    """
    Lay out a bin dir the way a test build does: `<name>-home` dependency
    directories, a `hive` launcher and the metastore plugin jar.
    """
    bin_dir = root / "bin"
    bin_dir.mkdir(parents=True)
    for name in DEPENDENCIES:
        (bin_dir / f"{name}-home").mkdir()

    hive = bin_dir / "hive-home" / "bin" / "hive"
    hive.parent.mkdir()
    hive.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_HIVE}" "$@"\n', encoding="utf-8")
    hive.chmod(hive.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    (bin_dir / "hms-plugin.jar").touch()
    return bin_dir


def clean_environ(**overrides: str) -> dict[str, str]:
    """The current environment without any `*_HOME` overrides."""
    env = {k: v for k, v in os.environ.items() if not k.endswith("_HOME")}
    env.update(overrides)
    return env


def read_invocation(working_dir: Path) -> dict[str, Any]:
    return json.loads((working_dir / "fake_hive_invocation.json").read_text(encoding="utf-8"))
