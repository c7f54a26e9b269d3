from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from minihms.errors import NotFoundError


@dataclass(frozen=True)
class ResolvedEnvironment:
    bin_dir: Path
    homes: Mapping[str, Path]

    def home(self, name: str) -> Path:
        return self.homes[name]


def home_env_var(name: str) -> str:
    return f"{name.upper()}_HOME"


def find_home_dir(name: str, bin_dir: Path | str, environ: Mapping[str, str]) -> Path:
    """Locate the home directory of a dependency.

    An explicit `<NAME>_HOME` entry in `environ` wins and is used verbatim;
    otherwise the directory is expected next to the binaries as `<name>-home`.
    """
    env_var = home_env_var(name)
    override = environ.get(env_var)
    home_dir = Path(override) if override is not None else Path(bin_dir) / f"{name}-home"

    if not home_dir.exists():
        raise NotFoundError(env_var, home_dir)

    return home_dir


def resolve_environment(
    bin_dir: Path,
    environ: Mapping[str, str],
    dependencies: Iterable[str],
) -> ResolvedEnvironment:
    homes = {name: find_home_dir(name, bin_dir, environ) for name in dependencies}
    return ResolvedEnvironment(bin_dir=Path(bin_dir), homes=homes)
