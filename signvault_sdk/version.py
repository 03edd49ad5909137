"""
Version information for the SignVault SDK.
"""
import importlib.metadata
import pathlib

import tomli

DISTRIBUTION = "signvault-sdk"
DEFAULT_VERSION = "0.1.0"


def _version_from_pyproject() -> str:
    pyproject = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"
    with pyproject.open("rb") as f:
        return tomli.load(f)["project"]["version"]


def get_version() -> str:
    """Installed distribution version, else the one in a source checkout's pyproject.toml"""
    try:
        return importlib.metadata.version(DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        pass
    try:
        return _version_from_pyproject()
    except (OSError, KeyError, tomli.TOMLDecodeError):
        return DEFAULT_VERSION


__version__ = get_version()
