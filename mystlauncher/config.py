"""Persistent launcher configuration."""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Optional, Union

import semver

from .paths import get_user_profile_dir
from .process import get_product_version, hide_file

log = logging.getLogger(__name__)

IMAGE_NAME_PREFIX = "mysteriumnetwork/myst"
CONFIG_FILE_NAME = ".myst_node_launcher"
UPGRADE_CHECK_PERIOD = 24 * 60 * 60

_NODE_SOURCE_URL = "http://github.com/mysteriumnetwork/node/"
_NODE_UPDATE_FIX_VERSION = "1.0.38"


class InitialState(IntEnum):
    """Stage of the first-run installation sequence."""

    UNDEFINED = 0
    STAGE1 = 1  # after the welcome dialogue and elevation of rights
    STAGE2 = 2  # after enabling features / WSL update and a restart
    FIRST_RUN_AFTER_INSTALL = 3
    NORMAL_RUN = 4


# attribute name -> key in the configuration file, in file order
_JSON_FIELDS = (
    ("auto_start", "auto_start"),
    ("enabled", "enabled"),
    ("check_vm_settings_confirm", "check_vm_settings_confirm"),
    ("initial_state", "state"),
    ("auto_upgrade", "auto_upgrade"),
    ("node_exe_digest", "node_exe_digest"),
    ("node_exe_version", "node_exe_version"),
    ("node_latest_tag", "node_latest_tag"),
    ("last_upgrade_check", "last_upgrade_check"),
    ("backend", "backend"),
    ("enable_port_forwarding", "enable_port_forwarding"),
    ("port_range_begin", "port_range_begin"),
    ("port_range_end", "port_range_end"),
    ("network", "network"),
    ("launcher_version", "version"),
)


def _initial_state(value: Any) -> Union[InitialState, int]:
    try:
        return InitialState(int(value))
    except ValueError:
        return int(value)


def _parse_version(text: str) -> semver.Version:
    try:
        return semver.Version.parse(text)
    except (ValueError, TypeError):
        return semver.Version(0, 0, 0)


@dataclass
class Config:
    """Launcher settings stored as JSON in the user's profile directory."""

    auto_start: bool = False
    enabled: bool = False
    check_vm_settings_confirm: bool = False

    initial_state: Union[InitialState, int] = InitialState.UNDEFINED

    auto_upgrade: bool = False
    node_exe_timestamp: Optional[datetime] = None
    node_exe_digest: str = ""
    node_exe_version: str = ""
    node_latest_tag: str = ""
    last_upgrade_check: int = 0

    backend: str = ""

    enable_port_forwarding: bool = False
    port_range_begin: int = 0
    port_range_end: int = 0

    network: str = ""
    launcher_version: str = ""

    path: Optional[str] = field(default=None, repr=False, compare=False)

    @property
    def file_path(self) -> str:
        """Location of the configuration file."""
        if self.path is not None:
            return self.path
        return f"{get_user_profile_dir()}/{CONFIG_FILE_NAME}"

    def latest_image_tag(self) -> str:
        """Return the image tag to track: the network name, or 'latest'."""
        return self.network or "latest"

    def full_image_name(self) -> str:
        """Return the image reference for the docker backend, or the node source otherwise."""
        if self.backend == "docker":
            return f"{IMAGE_NAME_PREFIX}:{self.latest_image_tag()}"
        return _NODE_SOURCE_URL

    def image_name_prefix(self) -> str:
        """Return the repository name of the node image."""
        return IMAGE_NAME_PREFIX

    def network_caption(self) -> str:
        """Return the display name of the selected network."""
        if self.network == "testnet3":
            return "TestNet3"
        return "MainNet"

    def refresh_last_upgrade_check(self) -> None:
        """Record that an upgrade check happened now."""
        self.last_upgrade_check = int(time.time())

    def need_to_check_upgrade(self) -> bool:
        """Tell whether a full day has passed since the last upgrade check."""
        return self.last_upgrade_check + UPGRADE_CHECK_PERIOD < time.time()

    def apply_defaults(self, is_new_file: bool) -> None:
        """Fill in defaults and migrate settings written by another launcher version."""
        product_version = get_product_version()

        self.enabled = True
        self.enable_port_forwarding = False
        self.port_range_begin = 42000
        self.port_range_end = 42100

        if not self.backend:
            # fresh file -> native; file with a version -> kept; no version -> docker
            self.backend = "native"
            if not is_new_file and not self.launcher_version:
                self.backend = "docker"

        if self.launcher_version != product_version:
            previous = _parse_version(self.launcher_version)
            if _parse_version(_NODE_UPDATE_FIX_VERSION).compare(previous) > 0:
                # versions before the fix could leave a stale node executable
                self.last_upgrade_check = 0
                self.node_latest_tag = ""
                self.node_exe_version = ""

            self.launcher_version = product_version
            self.save()

    def to_dict(self) -> Dict[str, Any]:
        """Return the settings as they are stored in the file."""
        data = {key: getattr(self, attr) for attr, key in _JSON_FIELDS}
        data["state"] = int(self.initial_state)
        return data

    def update_from_dict(self, data: Dict[str, Any]) -> None:
        """Take over the known settings present in *data*."""
        for attr, key in _JSON_FIELDS:
            if key not in data:
                continue
            value = data[key]
            if attr == "initial_state":
                value = _initial_state(value)
            setattr(self, attr, value)

    def read(self) -> None:
        """Load the settings, creating the file with defaults if it is missing."""
        path = self.file_path
        if not os.path.exists(path):
            self.apply_defaults(True)
            self.save()
            return
        try:
            hide_file(path, False)
        except OSError as err:
            log.warning("!HideFile %s", err)

        try:
            with open(path, encoding="utf-8") as f:
                text = f.read()
        except OSError as err:
            log.error("Config !Read %s", err)
            return

        try:
            data = json.loads(text)
        except ValueError:
            data = None
        if isinstance(data, dict):
            self.update_from_dict(data)
        self.apply_defaults(False)

    def save(self) -> None:
        """Write the settings to the configuration file."""
        try:
            with open(self.file_path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, indent=1)
                f.write("\n")
        except OSError as err:
            log.error("Config !Save %s", err)