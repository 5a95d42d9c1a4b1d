"""Running external commands and process-level helpers."""

import logging
import os
import subprocess
import time
import traceback
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple, TypeVar

from .paths import get_user_profile_dir

log = logging.getLogger(__name__)

T = TypeVar("T")

_IS_WINDOWS = os.name == "nt"
_CREATION_FLAGS = getattr(subprocess, "CREATE_NO_WINDOW", 0) if _IS_WINDOWS else 0

_product_info: Dict[str, str] = {"version": ""}


def cmd_start(name: str, *args: str) -> subprocess.Popen:
    """Start a command without waiting for it."""
    log.info("Run: %s %s", name, " ".join(args))
    return subprocess.Popen([name, *args], creationflags=_CREATION_FLAGS)


def cmd_run(name: str, *args: str, capture: bool = False) -> Tuple[int, Optional[str]]:
    """Run a command to completion.

    Returns the exit status (-1 if it was ended by a signal) and, when
    *capture* is set, its standard output.
    """
    log.info("Run and wait: %s %s", name, " ".join(args))
    completed = subprocess.run(
        [name, *args],
        stdout=subprocess.PIPE if capture else None,
        text=capture,
        creationflags=_CREATION_FLAGS,
    )
    status = completed.returncode if completed.returncode >= 0 else -1
    return status, completed.stdout if capture else None


def retry(attempts: int, sleep: float, fn: Callable[[], T]) -> T:
    """Call *fn* up to *attempts* times, sleeping *sleep* seconds between failures."""
    while True:
        try:
            return fn()
        except Exception:
            attempts -= 1
            if attempts <= 0:
                raise
            time.sleep(sleep)


def write_panic_trace(thread_name: str, exc: BaseException) -> Optional[str]:
    """Report an unexpected exception and save its trace in the profile directory.

    Returns the path of the trace file, or None if it could not be created.
    """
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    print(f"Panic: {exc}")
    print(f"Stacktrace {thread_name}: {stack}")
    fname = f"{get_user_profile_dir()}/launcher_trace_{int(datetime.now().timestamp())}.txt"
    report = (
        f"Version {get_product_version()}: \n"
        f"Panic: {exc}\n"
        f"Stacktrace {thread_name}: \n"
        f"{stack}"
    )
    try:
        with open(fname, "w", encoding="utf-8") as f:
            f.write(report)
    except OSError as err:
        print(err)
        return None
    return fname


def has_docker() -> bool:
    """Tell whether the docker command line client responds."""
    try:
        if _IS_WINDOWS:
            status, _ = cmd_run("docker", "version")
        else:
            # run through a shell: starting the binary directly may hang on macOS
            status, _ = cmd_run("/bin/sh", "-c", "/usr/local/bin/docker version")
    except OSError as err:
        log.error("HasDocker error: %s", err)
        raise
    return status in (0, 1)


def set_product_version(version: str) -> None:
    """Record the launcher's product version."""
    _product_info["version"] = version


def get_product_version() -> str:
    """Return the launcher's product version."""
    return _product_info["version"]


def is_admin() -> bool:
    """Tell whether the process runs with superuser rights."""
    getuid = getattr(os, "getuid", None)
    return getuid is not None and getuid() == 0


def hide_file(path, hide: bool) -> str:
    """Set or clear the hidden attribute of a file and return its path.

    Only Windows keeps such an attribute; elsewhere the path is returned as is.
    """
    path = os.fspath(path)
    if _IS_WINDOWS:
        subprocess.run(
            ["attrib", "+h" if hide else "-h", path],
            check=True,
            stdout=subprocess.DEVNULL,
            creationflags=_CREATION_FLAGS,
        )
    return path