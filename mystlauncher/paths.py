"""Locations of user and temporary directories, and path helpers."""

import os

_IS_WINDOWS = os.name == "nt"


def get_tmp_dir() -> str:
    """Return the directory for temporary files."""
    if _IS_WINDOWS:
        return os.environ.get("TMP", "")
    return os.environ.get("TMPDIR") or "/tmp"


def get_user_profile_dir() -> str:
    """Return the current user's home directory as given by the environment."""
    if _IS_WINDOWS:
        return os.environ.get("USERPROFILE", "")
    return os.environ.get("HOME", "")


def make_directory_if_not_exists(path) -> None:
    """Create a single directory unless something already exists at *path*."""
    if not os.path.exists(path):
        os.mkdir(path, 0o755)


def make_canonical_path(path) -> str:
    """Return the lexically cleaned form of *path*."""
    return os.path.normpath(path)