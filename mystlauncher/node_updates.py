"""Node image version discovery from the Docker Hub tag listing."""

import logging
import platform
import re
from dataclasses import dataclass, field
import json
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

import requests

from .paths import get_tmp_dir

log = logging.getLogger(__name__)

TAGS_URL = "https://registry.hub.docker.com/v2/repositories/mysteriumnetwork/myst/tags?page_size=10"
CACHE_FILE_NAME = "myst_docker_hub_cache.txt"
MIN_VERSION = (0, 66, 3)

_CONNECT_TIMEOUT = 30
_READ_TIMEOUT = 10

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+).*$")

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
}


@dataclass
class TagImage:
    """One platform-specific image behind a tag."""

    architecture: str = ""
    features: str = ""
    variant: str = ""
    digest: str = ""
    os: str = ""
    os_features: str = ""
    os_version: str = ""
    size: int = 0
    status: str = ""
    last_pulled: str = ""
    last_pushed: str = ""


@dataclass
class TagResult:
    """A tag of the node image repository."""

    name: str = ""
    images: List[TagImage] = field(default_factory=list)
    id: int = 0
    last_updated: str = ""
    full_size: int = 0
    tag_status: str = ""


class ResolvedVersions(NamedTuple):
    """Latest digest and the version names derived from a tag listing."""

    latest_digest: str
    latest_version: str
    current_version: str


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _number(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _image_from_dict(data: Dict[str, Any]) -> TagImage:
    return TagImage(
        architecture=_text(data.get("architecture")),
        features=_text(data.get("features")),
        variant=_text(data.get("variant")),
        digest=_text(data.get("digest")),
        os=_text(data.get("os")),
        os_features=_text(data.get("os_features")),
        os_version=_text(data.get("os_version")),
        size=_number(data.get("size")),
        status=_text(data.get("status")),
        last_pulled=_text(data.get("last_pulled")),
        last_pushed=_text(data.get("last_pushed")),
    )


def _result_from_dict(data: Dict[str, Any]) -> TagResult:
    return TagResult(
        name=_text(data.get("name")),
        images=[_image_from_dict(im) for im in data.get("images") or [] if isinstance(im, dict)],
        id=_number(data.get("id")),
        last_updated=_text(data.get("last_updated")),
        full_size=_number(data.get("full_size")),
        tag_status=_text(data.get("tag_status")),
    )


def _go_arch() -> str:
    machine = platform.machine().lower()
    return _ARCH_NAMES.get(machine, machine)


def check_version_requirement(version: str, min_version: Sequence[int] = MIN_VERSION) -> bool:
    """Tell whether *version* satisfies the minimum version requirement."""
    log.debug("[updates] !checkVersionRequirement %s", version)
    match = _VERSION_RE.match(version)
    if match is None:
        return False

    last = len(min_version) - 1
    satisfied = False
    for k, part in enumerate(match.groups()):
        number = int(part)
        if number > min_version[k]:
            satisfied = True
            break
        if k == last:
            satisfied = number >= min_version[k]
    return satisfied


def parse_tags(data: Union[bytes, str]) -> List[TagResult]:
    """Parse a tag listing; raises ValueError if it is not a valid listing."""
    document = json.loads(data)
    if not isinstance(document, dict):
        raise ValueError("tag listing is not a JSON object")
    results = document.get("results") or []
    if not isinstance(results, list):
        raise ValueError("tag listing results are not a list")
    return [_result_from_dict(r) for r in results if isinstance(r, dict)]


def resolve_versions(
    results: Iterable[TagResult], image_tag: str, arch: str, image_info
) -> ResolvedVersions:
    """Find the latest digest for *arch*, its version name and the current image's version."""
    latest_digest = ""
    latest_version = ""
    current_version = ""

    for res in results:
        matches_version = _VERSION_RE.match(res.name) is not None
        for im in res.images:
            if res.name == image_tag and im.architecture == arch:
                latest_digest = im.digest

            # custom tags such as testnet3 carry a single image version
            if image_tag != "latest":
                matches_version = True

            if matches_version:
                if latest_digest == im.digest:
                    latest_version = res.name
                # multi-arch images have two digests: the image's and the manifest's
                if image_info.has_digest(im.digest):
                    current_version = res.name

    return ResolvedVersions(latest_digest, latest_version, current_version)


def _fetch_tags() -> Optional[bytes]:
    try:
        response = requests.get(TAGS_URL, timeout=(_CONNECT_TIMEOUT, _READ_TIMEOUT))
    except requests.RequestException as err:
        log.warning("[updates] tag listing failed: %s", err)
        return None
    with response:
        if response.status_code != 200:
            return None
        return response.content


def _read_cache(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError:
        return b""


def _write_cache(path: str, data: bytes) -> None:
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as err:
        log.warning("[updates] cache write failed: %s", err)


def check_version_and_upgrades(model, refresh_version_cache: bool = False) -> None:
    """Update *model* with the current and latest node image versions.

    A cached tag listing is used first; the listing is fetched again when asked,
    when there is no cache, once a day, or when the current version is unknown.
    """
    log.info("[updates] !CheckCurrentVersionAndUpgrades")

    cache_path = f"{get_tmp_dir()}/{CACHE_FILE_NAME}"
    image_tag = model.config.latest_image_tag()
    arch = _go_arch()

    latest_digest = ""
    latest_version = ""
    current_version = ""

    def apply(data: bytes) -> None:
        nonlocal latest_digest, latest_version, current_version
        try:
            results = parse_tags(data)
        except ValueError:
            results = None
        if results is not None:
            resolved = resolve_versions(results, image_tag, arch, model.image_info)
            latest_digest = resolved.latest_digest or latest_digest
            latest_version = resolved.latest_version or latest_version
            current_version = resolved.current_version

        info = model.image_info
        info.digest_latest = latest_digest
        info.version_current = current_version
        info.version_latest = latest_version
        info.has_update = bool(latest_digest) and not info.has_digest(latest_digest)
        model.update()

        if check_version_requirement(current_version, MIN_VERSION):
            model.current_img_has_report_version_option = True

    data = _read_cache(cache_path)
    if data:
        apply(data)

    if (
        refresh_version_cache
        or not data
        or model.config.need_to_check_upgrade()
        or not current_version
    ):
        fetched = _fetch_tags()
        if fetched is not None:
            model.config.refresh_last_upgrade_check()
            model.config.save()
            _write_cache(cache_path, fetched)
            apply(fetched)