"""Latest-release metadata from the GitHub API."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
import semver

log = logging.getLogger(__name__)

API_TIMEOUT = 30.0
BASE_URL = "https://api.github.com/repos/{}/{}/releases/latest"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass
class Asset:
    """A file attached to a release."""

    id: int = 0
    name: str = ""
    url: str = ""


@dataclass
class Release:
    """A published release and its assets."""

    id: int = 0
    name: str = ""
    tag_name: str = ""
    draft: bool = False
    prerelease: bool = False
    published_at: Optional[datetime] = None
    assets: List[Asset] = field(default_factory=list)
    version: Optional[semver.Version] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Release":
        """Build a release from the API's JSON object."""
        assets = [
            Asset(
                id=a.get("id", 0),
                name=a.get("name", ""),
                url=a.get("browser_download_url", ""),
            )
            for a in data.get("assets") or []
        ]
        return cls(
            id=data.get("id", 0),
            name=data.get("name") or "",
            tag_name=data.get("tag_name") or "",
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            published_at=_parse_time(data.get("published_at")),
            assets=assets,
        )


def fetch_latest_release(org: str, repo: str, timeout: float = API_TIMEOUT) -> Release:
    """Fetch the latest release of *org*/*repo* and parse its tag as a version.

    Raises requests exceptions on transport failures or a non-200 answer, and
    ValueError when the answer or the tag cannot be parsed.
    """
    url = BASE_URL.format(org, repo)
    log.info("FetchLatestRelease> %s", url)

    # pin to API version 3 to keep the response layout stable
    response = requests.get(
        url, headers={"Accept": "application/vnd.github.v3+json"}, timeout=timeout
    )
    if response.status_code != 200:
        raise requests.HTTPError(
            f"request failed with {response.status_code} ({response.reason})",
            response=response,
        )

    release = Release.from_dict(response.json())
    try:
        release.version = semver.Version.parse(release.tag_name)
    except (ValueError, TypeError) as err:
        raise ValueError(f"failed to parse version {release.tag_name!r}: {err}") from err
    return release