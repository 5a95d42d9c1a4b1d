# mystlauncher

A library that keeps a node running in a Docker container. It reads and
writes the launcher's settings file, checks the Docker Hub tag listing for
newer node images, looks up the latest GitHub release of a repository, and
creates, starts, stops, restarts and removes the node container through the
Docker Engine API.

## Modules

- `mystlauncher.config`: `Config` and `InitialState`. Settings are stored as
  indented JSON in `.myst_node_launcher` in the user's home directory (or at
  `Config(path=...)`). `Config.read()` loads the file, or creates it with
  defaults when it is missing. `Config.save()` writes it back.
  `apply_defaults()` sets port range 42000–42100, enables the node, picks a
  backend (`native` for a new file, `docker` for an old file with no version)
  and records the current product version. `full_image_name()` and
  `latest_image_tag()` build the image reference. `need_to_check_upgrade()`
  returns true once 24 hours have passed since `refresh_last_upgrade_check()`.
- `mystlauncher.uimodel`: `UIModel` holds the shared launcher state, and
  `ImageInfo` holds what is known about the current and latest images. A
  synchronous `EventBus` carries changes. `UIModel.ui_bus` publishes
  `model-change`, `state-change`, `container-state`, `want-exit` and
  `config-read`. `UIModel.bus2` publishes `backend` when
  `trigger_change_backend()` switches backends. Actions such as
  `trigger_node_enable_action()` are passed to the `app` object given to the
  model, through its `trigger_action()` method.
- `mystlauncher.states`: the enums `UIState`, `RunnableState` (its `str()`
  gives `RUNNING`, `STARTING..`, `INSTALLING..` or `OFFLINE`), `InstallStep`,
  `Action` and `DialogResult`.
- `mystlauncher.node_updates`: `check_version_and_upgrades(model, ...)`
  matches the running image's digests against the published tags. It sets
  `model.image_info` and `model.current_img_has_report_version_option`. The
  tag listing is cached as `myst_docker_hub_cache.txt` in the temporary
  directory. The listing is fetched again when you ask for it, when there is
  no cache, once a day, or when the current version is unknown. The building
  blocks `parse_tags()`, `resolve_versions()` and
  `check_version_requirement()` are also public; the minimum version is
  0.66.3.
- `mystlauncher.releases`: `fetch_latest_release(org, repo)` returns a
  `Release` with its `Asset` list and a `semver.Version` parsed from the tag.
  It raises `requests.HTTPError` for a non-200 answer and `ValueError` for an
  unparsable tag.
- `mystlauncher.docker_manager`: `Manager` drives the container named `myst`
  through a `DockerClient`. The client speaks to `DOCKER_HOST`, or to
  `unix:///var/run/docker.sock` when `DOCKER_HOST` is unset. `unix://`,
  `tcp://`, `http://` and `https://` addresses are accepted.
  - `Manager.container_spec()` builds the container configuration. It exposes
    `4449/tcp`. When port forwarding is enabled, it also publishes the UDP
    range and passes `--udp.ports`. It bind-mounts `~/.mysterium-node` at
    `/var/lib/mysterium-node`.
  - `start()` pulls the image and creates the container if the container is
    missing. It recreates the container when the launcher version recorded in
    the container's command is out of date.
  - `restart()` stops, removes, recreates and starts the container.
  - `update()` pulls the image by tag and by latest digest, then restarts.
  - A missing container raises `ContainerNotFoundError`. Other failures raise
    `DockerError`.
- `mystlauncher.platform_darwin`: `PlatformManager.features()` uses `sysctl`
  to report whether a macOS host supports the hypervisor framework.
- `mystlauncher.paths`: directory helpers.
- `mystlauncher.download`: `download_file()` with progress through
  `ProgressCounter`, and `get_docker_desktop_link()`.
- `mystlauncher.process`: `cmd_run()`, `cmd_start()`, `retry()`,
  `has_docker()`, `is_admin()`, `set_product_version()` and
  `write_panic_trace()`.

## Example

```python
from mystlauncher.process import set_product_version
from mystlauncher.uimodel import UIModel
from mystlauncher.docker_manager import Manager

set_product_version("1.0.40")
model = UIModel()
model.set_product_version("v1.0.40")

manager = Manager(model)
manager.check_current_version_and_upgrades(refresh_version_cache=False)

if model.image_info.has_update:
    manager.update()
else:
    manager.start()
```

Listening for changes:

```python
model.ui_bus.subscribe("container-state", lambda: print(model.state_container))
```

Downloading with progress:

```python
from mystlauncher.download import download_file

download_file("node.tar.gz", "https://example.com/node.tar.gz", lambda pct: print(pct, "%"))
```

The file is written to `<path>.tmp` first. It is renamed to `<path>` only
after the download completes.

## What it does not do

- There is no graphical interface, tray icon or command-line program. The
  package is a library for such a front end to use.
- Only the Docker backend is driven. The `native` backend can be selected in
  `Config`, but nothing here downloads or runs a node executable.
- Windows host preparation is not covered: enabling optional features, WSL
  updates, installing the launcher, shortcuts and registry entries.
  `PlatformManager` covers macOS only.