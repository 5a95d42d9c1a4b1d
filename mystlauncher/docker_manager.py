"""Management of the node container through the Docker Engine API."""

import http.client
import json
import logging
import os
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import quote, urlencode, urlsplit

from .node_updates import check_version_and_upgrades
from .paths import get_user_profile_dir, make_directory_if_not_exists

log = logging.getLogger(__name__)

CONTAINER_NAME = "myst"
REPORT_LAUNCHER_VERSION_FLAG = "--launcher.ver"

OPERATION_TIMEOUT_SEC = 10
PULL_TIMEOUT_SEC = 5 * 60

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"

NODE_PORT = "4449/tcp"
NODE_DATA_TARGET = "/var/lib/mysterium-node"

ERR_COULD_NOT_CONNECT = "could not connect to docker client"
ERR_COULD_NOT_LIST = "could not list containers"
ERR_CONTAINER_NOT_FOUND = "could not find myst container"
ERR_CONTAINER_START = "could not start myst container"
ERR_COULD_NOT_PULL_IMAGE = "could not pull myst image"
ERR_COULD_NOT_CREATE_IMAGE = "could not create myst image"
ERR_COULD_NOT_STOP = "could not stop myst container"
ERR_COULD_NOT_REMOVE_IMAGE = "could not remove myst image"


class DockerError(Exception):
    """A docker operation failed."""


class ContainerNotFoundError(DockerError):
    """The node container does not exist."""

    def __init__(self, message: str = ERR_CONTAINER_NOT_FOUND):
        super().__init__(message)


def _wrapped(message: str, err: BaseException) -> DockerError:
    return DockerError(f"{message}: {err}")


@dataclass
class Container:
    """A container as listed by the docker daemon."""

    id: str = ""
    names: List[str] = field(default_factory=list)
    image: str = ""
    image_id: str = ""
    command: str = ""
    state: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Container":
        """Build a container from an entry of the container listing."""
        return cls(
            id=data.get("Id", ""),
            names=list(data.get("Names") or []),
            image=data.get("Image", ""),
            image_id=data.get("ImageID", ""),
            command=data.get("Command", ""),
            state=data.get("State", ""),
        )

    def is_running(self) -> bool:
        """Tell whether the container is running."""
        return self.state == "running"


class ContainerSpec(NamedTuple):
    """Container configuration and host configuration in Engine API form."""

    config: Dict[str, Any]
    host_config: Dict[str, Any]


class _UnixHTTPConnection(http.client.HTTPConnection):
    def __init__(self, socket_path: str, timeout: float):
        super().__init__("localhost", timeout=timeout)
        self._socket_path = socket_path

    def connect(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)
        try:
            sock.connect(self._socket_path)
        except OSError:
            sock.close()
            raise
        self.sock = sock


class DockerClient:
    """Minimal client for the Docker Engine HTTP API."""

    def __init__(self, host: Optional[str] = None):
        host = host or os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST
        parts = urlsplit(host)
        if parts.scheme == "unix":
            if not hasattr(socket, "AF_UNIX"):
                raise DockerError(f"{ERR_COULD_NOT_CONNECT}: unix sockets are unavailable")
            self._socket_path: Optional[str] = parts.path
            self._netloc = ""
            self._https = False
        elif parts.scheme in ("tcp", "http", "https"):
            if not parts.hostname:
                raise DockerError(f"{ERR_COULD_NOT_CONNECT}: no host in {host!r}")
            self._socket_path = None
            self._netloc = parts.netloc
            self._https = parts.scheme == "https"
        else:
            raise DockerError(f"{ERR_COULD_NOT_CONNECT}: unsupported host {host!r}")
        self.host = host

    def _connection(self, timeout: float) -> http.client.HTTPConnection:
        if self._socket_path is not None:
            return _UnixHTTPConnection(self._socket_path, timeout)
        if self._https:
            return http.client.HTTPSConnection(self._netloc, timeout=timeout)
        return http.client.HTTPConnection(self._netloc, timeout=timeout)

    def _request(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        timeout: float = OPERATION_TIMEOUT_SEC,
    ) -> Tuple[int, bytes]:
        url = path + ("?" + urlencode(query) if query else "")
        payload = None
        headers = {}
        if body is not None:
            payload = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        conn = self._connection(timeout)
        try:
            conn.request(method, url, body=payload, headers=headers)
            response = conn.getresponse()
            data = response.read()
            status = response.status
        except OSError as err:
            raise _wrapped(ERR_COULD_NOT_CONNECT, err) from err
        finally:
            conn.close()
        if status >= 400:
            raise DockerError(_error_message(status, data))
        return status, data

    def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        _, data = self._request(method, path, **kwargs)
        try:
            return json.loads(data) if data else None
        except ValueError as err:
            raise DockerError(f"invalid response from docker: {err}") from err

    def list_containers(self) -> List[Container]:
        """List all containers, stopped ones included."""
        entries = self._json("GET", "/containers/json", query={"all": 1}) or []
        return [Container.from_api(e) for e in entries]

    def list_images(self) -> List[Dict[str, Any]]:
        """List the local images as returned by the daemon."""
        return self._json("GET", "/images/json") or []

    def pull_image(self, image: str) -> None:
        """Pull *image* and wait until the pull completes."""
        self._request(
            "POST", "/images/create", query={"fromImage": image}, timeout=PULL_TIMEOUT_SEC
        )

    def create_container(
        self, name: str, config: Dict[str, Any], host_config: Dict[str, Any]
    ) -> str:
        """Create a container named *name* and return its id."""
        body = dict(config)
        body["HostConfig"] = host_config
        created = self._json("POST", "/containers/create", query={"name": name}, body=body)
        return (created or {}).get("Id", "")

    def start_container(self, container_id: str) -> None:
        """Start a container."""
        self._request("POST", f"/containers/{quote(container_id)}/start")

    def stop_container(self, container_id: str, timeout: Optional[int] = None) -> None:
        """Stop a container, giving it *timeout* seconds before it is killed."""
        query = {"t": timeout} if timeout is not None else None
        wait = OPERATION_TIMEOUT_SEC + (timeout or 0)
        self._request("POST", f"/containers/{quote(container_id)}/stop", query=query, timeout=wait)

    def remove_container(self, container_id: str) -> None:
        """Remove a container."""
        self._request("DELETE", f"/containers/{quote(container_id)}")


def _error_message(status: int, data: bytes) -> str:
    try:
        message = json.loads(data).get("message", "")
    except (ValueError, AttributeError):
        message = data.decode("utf-8", "replace").strip()
    return f"docker responded {status}: {message}" if message else f"docker responded {status}"


def extract_repo_digests(repo_digests) -> List[str]:
    """Return the digest part of each 'name@digest' repository digest."""
    digests = []
    for entry in repo_digests:
        _, sep, digest = entry.partition("@")
        if not sep:
            raise ValueError(f"repository digest without '@': {entry!r}")
        digests.append(digest.split("@")[0])
    return digests


def get_version_from_command(cmd: str) -> str:
    """Return the launcher version recorded in a container command, or ''.

    Arguments after the executable are read as flags; any flag other than
    the launcher version flag makes the command unreadable.
    """
    args = cmd.split(" ")
    if len(args) <= 1:
        return ""
    flag_name = REPORT_LAUNCHER_VERSION_FLAG.lstrip("-")
    value = ""
    remaining = iter(args[1:])
    for arg in remaining:
        if len(arg) < 2 or not arg.startswith("-"):
            break
        if arg == "--":
            break
        name = arg[2:] if arg.startswith("--") else arg[1:]
        if not name or name[0] in "-=":
            return ""
        name, sep, flag_value = name.partition("=")
        if name != flag_name:
            return ""
        if not sep:
            following = next(remaining, None)
            if following is None:
                return ""
            flag_value = following
        value = flag_value
    return value


class Manager:
    """Runs the node in a docker container."""

    def __init__(self, model, client=None, data_dir: Optional[str] = None):
        self.model = model
        self.client = client if client is not None else DockerClient()
        if data_dir is None:
            data_dir = f"{get_user_profile_dir()}{os.sep}.mysterium-node"
        make_directory_if_not_exists(data_dir)
        self.data_dir = data_dir

    def start(self) -> bool:
        """Make sure the node container runs; return whether it was running already."""
        log.info("[myst] start >")
        try:
            container = self.find_container()
        except ContainerNotFoundError:
            self._pull_step("pullMystLatest", self._pull_latest)
            self._pull_step("pullMystLatestByDigestLatest", self._pull_latest_by_digest)
            try:
                self._create_container()
            except (DockerError, ValueError) as err:
                raise _wrapped("createMystContainer", err) from err
            container = self.find_container()

        if (
            self.model.current_img_has_report_version_option
            and REPORT_LAUNCHER_VERSION_FLAG not in container.command
        ) or self._launcher_version_changed(container):
            self.restart()
            return True

        if container.is_running():
            return True
        self._start_container()
        return False

    def restart(self) -> None:
        """Recreate the container with the current settings and start it."""
        log.info("[myst] Restart >")
        try:
            container: Optional[Container] = self.find_container()
        except ContainerNotFoundError:
            container = None

        if container is not None:
            try:
                self.client.stop_container(container.id, None)
            except DockerError as err:
                raise _wrapped(ERR_COULD_NOT_STOP, err) from err
            try:
                self.client.remove_container(container.id)
            except DockerError as err:
                raise _wrapped(ERR_COULD_NOT_REMOVE_IMAGE, err) from err

        self._create_container()
        self._start_container()

    def update(self) -> None:
        """Pull the latest image and recreate the container from it."""
        log.info("[myst] Update >")
        # pulled by tag and by digest: multi-arch images report an extra manifest digest
        self._pull_step("pullMystLatest", self._pull_latest)
        self._pull_step("pullMystLatestByDigestLatest", self._pull_latest_by_digest)
        self.restart()

    def stop(self) -> None:
        """Stop the node container."""
        container = self.find_container()
        try:
            self.client.stop_container(container.id, OPERATION_TIMEOUT_SEC)
        except DockerError as err:
            raise _wrapped(ERR_COULD_NOT_STOP, err) from err

    def remove(self) -> None:
        """Remove the node container."""
        container = self.find_container()
        try:
            self.client.remove_container(container.id)
        except DockerError as err:
            raise _wrapped(ERR_COULD_NOT_REMOVE_IMAGE, err) from err

    def find_container(self) -> Container:
        """Return the node container; raise ContainerNotFoundError if there is none."""
        try:
            containers = self.client.list_containers()
        except DockerError as err:
            raise _wrapped(ERR_COULD_NOT_LIST, err) from err
        wanted = "/" + CONTAINER_NAME
        for container in containers:
            if wanted in container.names:
                return container
        raise ContainerNotFoundError()

    def container_spec(self) -> ContainerSpec:
        """Build the node container's configuration from the launcher settings."""
        model = self.model
        config = model.config

        cmd_args = ["service", "--agreed-terms-and-conditions"]
        if model.current_img_has_report_version_option:
            version_arg = f"{REPORT_LAUNCHER_VERSION_FLAG}={model.product_version_string()}"
            cmd_args.insert(0, version_arg)

        exposed: Dict[str, Dict[str, Any]] = {NODE_PORT: {}}
        bindings: Dict[str, List[Dict[str, str]]] = {
            NODE_PORT: [{"HostIp": "0.0.0.0", "HostPort": "4449"}]
        }
        if config.enable_port_forwarding:
            begin, end = config.port_range_begin, config.port_range_end
            if begin > end:
                raise ValueError(f"Invalid range specified for port: {begin}-{end}")
            cmd_args.insert(0, f"--udp.ports={begin}:{end}")
            for port in range(begin, end + 1):
                exposed[f"{port}/udp"] = {}
                bindings[f"{port}/udp"] = [{"HostIp": "0.0.0.0", "HostPort": str(port)}]

        container_config = {
            "Image": config.full_image_name(),
            "ExposedPorts": exposed,
            "Cmd": cmd_args,
        }
        host_config = {
            "CapAdd": ["NET_ADMIN"],
            "PortBindings": bindings,
            "Mounts": [{"Type": "bind", "Source": self.data_dir, "Target": NODE_DATA_TARGET}],
        }
        return ContainerSpec(container_config, host_config)

    def check_current_version_and_upgrades(self, refresh_version_cache: bool = False) -> None:
        """Refresh the current image digests, then the known image versions."""
        self._read_current_image_digests()
        check_version_and_upgrades(self.model, refresh_version_cache)

    def _launcher_version_changed(self, container: Container) -> bool:
        launcher_version = get_version_from_command(container.command)
        return launcher_version != "" and launcher_version != self.model.product_version_string()

    def _pull_step(self, step: str, pull) -> None:
        try:
            pull()
        except DockerError as err:
            raise _wrapped(step, err) from err

    def _pull_image(self, image: str) -> None:
        log.info("[myst] !pullMystImage %s", image)
        try:
            self.client.pull_image(image)
        except DockerError as err:
            raise _wrapped(ERR_COULD_NOT_PULL_IMAGE, err) from err

    def _pull_latest(self) -> None:
        self._pull_image(self.model.config.full_image_name())

    def _pull_latest_by_digest(self) -> None:
        digest = self.model.image_info.digest_latest
        if not digest:
            log.info("[myst] pullMystByDigest > no DigestLatest !")
            return
        self._pull_image(f"docker.io/{self.model.config.image_name_prefix()}@{digest}")

    def _create_container(self) -> None:
        log.info("[myst] !createMystContainer")
        spec = self.container_spec()
        log.info("[myst] createMystContainer > %s", spec.config)
        try:
            self.client.create_container(CONTAINER_NAME, spec.config, spec.host_config)
        except DockerError as err:
            raise _wrapped(ERR_COULD_NOT_CREATE_IMAGE, err) from err

    def _start_container(self) -> None:
        log.info("[myst] !startMystContainer")
        container = self.find_container()
        try:
            self.client.start_container(container.id)
        except DockerError as err:
            raise _wrapped(ERR_CONTAINER_START, err) from err

    def _read_current_image_digests(self) -> None:
        try:
            container = self.find_container()
            images = self.client.list_images()
        except DockerError:
            return
        for image in images:
            if image.get("Id") == container.image_id:
                self.model.image_info.current_img_digests = extract_repo_digests(
                    image.get("RepoDigests") or []
                )