import json

import pytest

from mystlauncher.config import Config
from mystlauncher.states import InstallStep, RunnableState, UIState
from mystlauncher.uimodel import EventBus, ImageInfo, UIModel


class RecordingApp:
    def __init__(self):
        self.actions = []

    def trigger_action(self, action):
        self.actions.append(action)


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / ".myst_node_launcher")


@pytest.fixture
def model(config_path):
    m = UIModel(Config(path=config_path), app=RecordingApp())
    return m


def record(bus, topic):
    seen = []
    bus.subscribe(topic, lambda *args: seen.append(args))
    return seen


def test_event_bus_passes_arguments():
    bus = EventBus()
    seen = record(bus, "topic")
    bus.publish("topic", 1, "a")
    bus.publish("other")
    assert seen == [(1, "a")]


def test_has_digest_ignores_case():
    info = ImageInfo(current_img_digests=["sha256:ABC", "sha256:def"])
    assert info.has_digest("sha256:abc") is True
    assert info.has_digest("SHA256:DEF") is True
    assert info.has_digest("sha256:xyz") is False


def test_mainnet_is_cleared_on_creation(config_path):
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump({"network": "mainnet", "version": ""}, f)
    m = UIModel(Config(path=config_path))
    assert m.config.network == ""
    assert m.current_net_is_mainnet() is True
    with open(config_path, encoding="utf-8") as f:
        assert json.load(f)["network"] == ""


def test_update_to_mainnet(model):
    model.config.network = "testnet3"
    assert model.current_net_is_mainnet() is False
    changes = record(model.ui_bus, "model-change")
    model.update_to_mainnet()
    assert model.config.network == ""
    assert changes == [()]
    assert model.app.actions == ["upgrade"]


def test_set_product_version_strips_prefix(model):
    model.set_product_version("v1.2.3")
    assert model.product_version == "1.2.3"
    model.set_product_version("1.2.4")
    assert model.product_version == "1.2.4"
    assert model.product_version_string().split("/")[0] == "1.2.4"


def test_update_properties(model):
    changes = record(model.ui_bus, "model-change")
    model.update_properties({"CheckVTx": InstallStep.FINISHED,
                             "InstallDocker": InstallStep.FAILED,
                             "Bogus": InstallStep.IN_PROGRESS})
    assert model.check_virt is InstallStep.FINISHED
    assert model.install_docker is InstallStep.FAILED
    assert len(changes) == 1


def test_update_properties_rejects_non_step(model):
    with pytest.raises(TypeError):
        model.update_properties({"CheckVTx": 2})


def test_reset_properties(model):
    model.update_properties({"DownloadFiles": InstallStep.FINISHED})
    model.reset_properties()
    assert model.download_files is InstallStep.NONE
    assert model.check_virt is InstallStep.NONE


def test_set_state_container_publishes_only_on_change(model):
    changes = record(model.ui_bus, "model-change")
    container = record(model.ui_bus, "container-state")
    model.set_state_container(RunnableState.RUNNING)
    model.set_state_container(RunnableState.RUNNING)
    assert model.is_running() is True
    assert len(changes) == 1
    assert len(container) == 1


def test_set_state_docker_publishes_only_on_change(model):
    changes = record(model.ui_bus, "model-change")
    model.set_state_docker(RunnableState.UNKNOWN)
    model.set_state_docker(RunnableState.STARTING)
    assert model.state_docker is RunnableState.STARTING
    assert len(changes) == 1


def test_switch_state_and_want_exit(model):
    states = record(model.ui_bus, "state-change")
    exits = record(model.ui_bus, "want-exit")
    model.switch_state(UIState.INSTALL_NEEDED)
    model.set_want_exit()
    assert model.state is UIState.INSTALL_NEEDED
    assert model.want_exit is True
    assert len(states) == 1 and len(exits) == 1


def test_node_enable_toggle_triggers_actions(model):
    initial = model.config.enabled
    model.trigger_node_enable_action()
    model.trigger_node_enable_action()
    assert model.config.enabled is initial
    expected = ["disable", "enable"] if initial else ["enable", "disable"]
    assert model.app.actions == expected


def test_autostart_toggle_is_saved(model, config_path):
    before = model.config.auto_start
    model.trigger_autostart_action()
    assert model.config.auto_start is (not before)
    with open(config_path, encoding="utf-8") as f:
        assert json.load(f)["auto_start"] is (not before)


def test_change_backend_publishes_once(model):
    backend_events = record(model.bus2, "backend")
    target = "docker" if model.config.backend != "docker" else "native"
    model.trigger_change_backend(target)
    model.trigger_change_backend(target)
    assert model.config.backend == target
    assert len(backend_events) == 1


def test_publish_forwards_to_ui_bus(model):
    seen = record(model.ui_bus, "custom")
    model.publish("custom", "x")
    assert seen == [("x",)]