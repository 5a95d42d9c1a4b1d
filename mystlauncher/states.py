"""State enumerations shared by the launcher's model and user interface."""

from enum import Enum, IntEnum


class UIState(IntEnum):
    """Top-level state of the launcher user interface."""

    INITIAL = 0
    INSTALL_NEEDED = -1
    INSTALL_IN_PROGRESS = -2
    INSTALL_FINISHED = -3
    INSTALL_ERROR = -4


class RunnableState(IntEnum):
    """State of a runnable component such as docker or the node container."""

    UNKNOWN = 0
    STARTING = 1
    RUNNING = 2
    INSTALLING = 3

    def __str__(self) -> str:
        return _RUNNABLE_CAPTIONS.get(self, "???")


_RUNNABLE_CAPTIONS = {
    RunnableState.RUNNING: "RUNNING",
    RunnableState.INSTALLING: "INSTALLING..",
    RunnableState.STARTING: "STARTING..",
    RunnableState.UNKNOWN: "OFFLINE",
}


class InstallStep(IntEnum):
    """Progress of a single installation step."""

    NONE = 0
    IN_PROGRESS = 1
    FINISHED = 2
    FAILED = 3


class Action(str, Enum):
    """Actions that can be triggered on the application controller."""

    CHECK = "check"
    UPGRADE = "upgrade"
    RESTART = "restart"
    ENABLE = "enable"
    DISABLE = "disable"
    STOP_RUNNER = "stop-runner"
    STOP = "stop"


class DialogResult(IntEnum):
    """Outcome of a dialogue shown to the user."""

    OK = 0
    CANCEL = 1
    TERM = 2