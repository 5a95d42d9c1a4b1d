"""Observable model behind the launcher's user interface."""

import logging
import sys
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .config import Config
from .states import Action, InstallStep, RunnableState, UIState

log = logging.getLogger(__name__)

# property names accepted by update_properties -> model attribute
_PROPERTY_ATTRS = {
    "CheckWindowsVersion": "check_windows_version",
    "CheckVTx": "check_virt",
    "CheckDocker": "check_docker",
    "InstallExecutable": "install_executable",
    "RebootAfterWSLEnable": "reboot_after_wsl_enable",
    "DownloadFiles": "download_files",
    "InstallWSLUpdate": "install_wsl_update",
    "InstallDocker": "install_docker",
    "CheckGroupMembership": "check_group_membership",
}


def _goos() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


class EventBus:
    """Synchronous publish/subscribe dispatcher keyed by topic."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Callable[..., Any]]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Callable[..., Any]) -> None:
        """Call *handler* with the published arguments whenever *topic* is published."""
        self._handlers[topic].append(handler)

    def publish(self, topic: str, *args: Any) -> None:
        """Invoke every handler subscribed to *topic*."""
        for handler in list(self._handlers.get(topic, ())):
            handler(*args)


@dataclass
class ImageInfo:
    """What is known about the current and latest node images."""

    digest_latest: str = ""
    current_img_digest: str = ""
    current_image_id: str = ""
    current_img_digests: List[str] = field(default_factory=list)

    has_update: bool = False
    version_current: str = ""
    version_latest: str = ""

    def has_digest(self, digest: str) -> bool:
        """Tell whether *digest* is one of the current image's digests, ignoring case."""
        # multi-arch images have two digests: the image's and the manifest's
        wanted = digest.casefold()
        return any(d.casefold() == wanted for d in self.current_img_digests)


class UIModel:
    """State shown by the user interface, publishing a topic on every change."""

    def __init__(self, config: Optional[Config] = None, app: Any = None):
        self.ui_bus = EventBus()
        # backend switch handlers may block, so they get a bus of their own
        self.bus2 = EventBus()

        self.state = UIState.INITIAL
        self.want_exit = False

        self.state_docker = RunnableState.UNKNOWN
        self.state_container = RunnableState.UNKNOWN
        self.caps = 0

        self.check_windows_version = InstallStep.NONE
        self.check_virt = InstallStep.NONE
        self.check_docker = InstallStep.NONE
        self.install_executable = InstallStep.NONE
        self.reboot_after_wsl_enable = InstallStep.NONE
        self.download_files = InstallStep.NONE
        self.install_wsl_update = InstallStep.NONE
        self.install_docker = InstallStep.NONE
        self.check_group_membership = InstallStep.NONE

        self.app = app
        self.image_info = ImageInfo()
        self.config = config if config is not None else Config()

        self.current_img_has_report_version_option = False
        self.duplicate_log_to_console = False
        self.flag_autorun = False
        self.node_flags = ""

        self.launcher_has_update = False
        self.product_version = ""
        self.product_version_latest = ""
        self.product_version_latest_url = ""

        self.config.read()
        if self.config.network == "mainnet":
            self.config.network = ""
            self.config.save()

    def current_net_is_mainnet(self) -> bool:
        """Tell whether the configured network is the main network."""
        return self.config.network in ("mainnet", "")

    def update_to_mainnet(self) -> None:
        """Switch to the main network and request an upgrade."""
        self.config.network = ""
        self.config.save()
        self.update()
        self.app.trigger_action(Action.UPGRADE.value)

    def set_product_version(self, version: str) -> None:
        """Record the launcher version, without a leading 'v'."""
        self.product_version = version[1:] if version.startswith("v") else version

    def product_version_string(self) -> str:
        """Return the version reported to the node: '<version>/<os>'."""
        return f"{self.product_version}/{_goos()}"

    def reset_properties(self) -> None:
        """Reset every installation step to none."""
        for attr in _PROPERTY_ATTRS.values():
            setattr(self, attr, InstallStep.NONE)
        self.ui_bus.publish("model-change")

    def update_properties(self, props: Dict[str, InstallStep]) -> None:
        """Set installation steps by their property names."""
        for key, value in props.items():
            if not isinstance(value, InstallStep):
                raise TypeError(f"property {key!r} needs an InstallStep, got {value!r}")
            attr = _PROPERTY_ATTRS.get(key)
            if attr is None:
                log.warning("Unknown property: %s", key)
                continue
            setattr(self, attr, value)
        self.ui_bus.publish("model-change")

    def update(self) -> None:
        """Announce that the model changed."""
        self.ui_bus.publish("model-change")

    def switch_state(self, state: UIState) -> None:
        """Move the interface to *state*."""
        self.state = state
        self.ui_bus.publish("state-change")

    def set_want_exit(self) -> None:
        """Record that the application should exit."""
        self.want_exit = True
        self.ui_bus.publish("want-exit")

    def is_running(self) -> bool:
        """Tell whether the node container is running."""
        return self.state_container == RunnableState.RUNNING

    def on_config_read(self) -> None:
        """Announce that the configuration was read."""
        self.ui_bus.publish("config-read")

    def set_state_docker(self, state: RunnableState) -> None:
        """Update the docker state, announcing a change."""
        if self.state_docker != state:
            self.state_docker = state
            self.ui_bus.publish("model-change")

    def set_state_container(self, state: RunnableState) -> None:
        """Update the container state, announcing a change."""
        if self.state_container != state:
            self.state_container = state
            self.ui_bus.publish("model-change")
            self.ui_bus.publish("container-state")

    def publish(self, topic: str, *args: Any) -> None:
        """Publish *topic* on the interface bus."""
        self.ui_bus.publish(topic, *args)

    def trigger_action(self, action: str) -> None:
        """Pass *action* to the application."""
        self.app.trigger_action(action)

    def trigger_autostart_action(self) -> None:
        """Toggle starting the node automatically."""
        self.config.auto_start = not self.config.auto_start
        self.config.save()
        self.ui_bus.publish("model-change")

    def trigger_node_enable_action(self) -> None:
        """Toggle whether the node is enabled and tell the application."""
        self.config.enabled = not self.config.enabled
        self.config.save()
        action = Action.ENABLE if self.config.enabled else Action.DISABLE
        self.trigger_action(action.value)

    def trigger_change_backend(self, backend: str) -> None:
        """Switch to *backend* if it is not the current one."""
        if self.config.backend != backend:
            self.config.backend = backend
            self.config.save()
            self.ui_bus.publish("model-change")
            self.bus2.publish("backend")