"""File download with progress reporting, and installer links."""

import os
import platform
import sys
from typing import Callable, Optional

import requests

ProgressCallback = Callable[[int], None]

_CONNECT_TIMEOUT = 30
_READ_TIMEOUT = 10
_CHUNK_SIZE = 64 * 1024

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


class ProgressCounter:
    """Counts bytes seen and reports whole-percent progress when it grows."""

    def __init__(self, content_length: int, callback: Optional[ProgressCallback] = None):
        self.content_length = content_length
        self.callback = callback
        self.total = 0
        self.progress = 0

    def update(self, chunk) -> int:
        """Account for *chunk* and return its length."""
        size = len(chunk)
        self.total += size
        if self.content_length > 0:
            new_progress = 100 * self.total // self.content_length
            if new_progress > self.progress:
                self.progress = new_progress
                if self.callback is not None:
                    self.callback(self.progress)
        return size


def download_file(filepath, url, callback: Optional[ProgressCallback] = None) -> None:
    """Download *url* to *filepath* through a temporary file, reporting progress."""
    filepath = os.fspath(filepath)
    tmp_path = filepath + ".tmp"
    with open(tmp_path, "wb") as out:
        with requests.get(
            url, stream=True, timeout=(_CONNECT_TIMEOUT, _READ_TIMEOUT)
        ) as response:
            length = int(response.headers.get("Content-Length", -1) or -1)
            counter = ProgressCounter(length, callback)
            if callback is not None:
                callback(0)
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if chunk:
                    out.write(chunk)
                    counter.update(chunk)
    os.replace(tmp_path, filepath)


def _current_system() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return sys.platform


def _current_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def get_docker_desktop_link(system: Optional[str] = None, arch: Optional[str] = None) -> str:
    """Return the Docker Desktop installer URL for *system* and *arch*."""
    system = system or _current_system()
    arch = arch or _current_arch()
    if system == "windows":
        return "https://desktop.docker.com/mac/stable/amd64/Docker Desktop Installer.exe"
    if system == "darwin":
        return f"https://desktop.docker.com/mac/stable/{arch}/Docker.dmg"
    raise ValueError("unknown system")