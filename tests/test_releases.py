from datetime import datetime, timezone

import pytest
import requests
import responses

from mystlauncher.releases import BASE_URL, Asset, Release, fetch_latest_release

URL = BASE_URL.format("example-org", "example-repo")

SAMPLE = {
    "id": 7,
    "name": "Release 1.2.3",
    "tag_name": "1.2.3",
    "draft": False,
    "prerelease": True,
    "published_at": "2021-05-04T10:20:30Z",
    "assets": [
        {"id": 11, "name": "launcher.exe",
         "browser_download_url": "https://example.com/launcher.exe"},
    ],
}


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_from_dict_maps_fields():
    release = Release.from_dict(SAMPLE)
    assert release.id == 7
    assert release.tag_name == "1.2.3"
    assert release.prerelease is True
    assert release.published_at == datetime(2021, 5, 4, 10, 20, 30, tzinfo=timezone.utc)
    assert release.assets == [Asset(11, "launcher.exe", "https://example.com/launcher.exe")]
    assert release.version is None


def test_fetch_latest_release_parses_version(mocked):
    mocked.add(responses.GET, URL, json=SAMPLE, status=200)
    release = fetch_latest_release("example-org", "example-repo")
    assert release.name == "Release 1.2.3"
    assert (release.version.major, release.version.minor, release.version.patch) == (1, 2, 3)
    assert mocked.calls[0].request.headers["Accept"] == "application/vnd.github.v3+json"


def test_fetch_latest_release_non_200_raises(mocked):
    mocked.add(responses.GET, URL, json={"message": "Not Found"}, status=404)
    with pytest.raises(requests.HTTPError, match="404"):
        fetch_latest_release("example-org", "example-repo")


def test_fetch_latest_release_bad_tag_raises(mocked):
    data = dict(SAMPLE, tag_name="v1.2.3")
    mocked.add(responses.GET, URL, json=data, status=200)
    with pytest.raises(ValueError, match="failed to parse version"):
        fetch_latest_release("example-org", "example-repo")


def test_fetch_latest_release_connection_error(mocked):
    mocked.add(responses.GET, URL, body=requests.ConnectionError("down"))
    with pytest.raises(requests.ConnectionError):
        fetch_latest_release("example-org", "example-repo")