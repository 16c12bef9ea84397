"""Version information for baseline-lens."""

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

_PYPROJECT = Path(__file__).resolve().parents[2] / "pyproject.toml"


def get_version_from_pyproject() -> str:
    """Installed distribution version, or the one in a source checkout's pyproject.toml.

    Raises:
        RuntimeError: If neither source has a version
    """
    try:
        return version("baseline-lens")
    except PackageNotFoundError:
        if _PYPROJECT.exists():
            with _PYPROJECT.open("rb") as f:
                return str(tomllib.load(f)["project"]["version"])
        raise RuntimeError("Could not determine package version") from None


__version__ = get_version_from_pyproject()
