import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Ensure tests can import project packages regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from config.settings import SearchSettings  # noqa: E402
from slskd.models import PeerResponse, SearchStatus  # noqa: E402


def make_file(path, *, size=30_000_000, bit_rate=None, bit_depth=None, sample_rate=None, length=240, locked=False):
    return {
        "filename": path,
        "size": size,
        "bitRate": bit_rate,
        "bitDepth": bit_depth,
        "sampleRate": sample_rate,
        "length": length,
        "isLocked": locked,
    }


def make_response(username, directory, count, *, ext="flac", upload_speed=0, queue_length=0, free_slot=False, **file_kwargs):
    files = [make_file(f"{directory}\\{index:02d} - Track.{ext}", **file_kwargs) for index in range(1, count + 1)]
    return PeerResponse.from_payload(
        {
            "username": username,
            "files": files,
            "fileCount": count,
            "uploadSpeed": upload_speed,
            "queueLength": queue_length,
            "hasFreeUploadSlot": free_slot,
        }
    )


class FakeBackend:
    """In-memory search backend keyed by search text."""

    def __init__(self, results=None, *, statuses=None, fail_on=None):
        self.results = dict(results or {})
        self.statuses = list(statuses or [])
        self.fail_on = set(fail_on or ())
        self.started = []
        self.cancelled = []
        self.removed = []
        self._texts = {}

    def start_search(self, text, *, search_id=None):
        if text in self.fail_on:
            from slskd.errors import BackendUnavailableError

            raise BackendUnavailableError(f"backend down for {text}")
        search_id = search_id or f"search-{len(self.started) + 1}"
        self.started.append(text)
        self._texts[search_id] = text
        return search_id

    def get_status(self, search_id):
        if self.statuses:
            state, file_count = self.statuses.pop(0)
        else:
            state, file_count = "Completed, Succeeded", 0
        return SearchStatus(
            id=search_id,
            state=state,
            is_complete=state.startswith("Completed"),
            file_count=file_count,
            response_count=0,
        )

    def get_results(self, search_id):
        return list(self.results.get(self._texts.get(search_id), []))

    def cancel_search(self, search_id):
        self.cancelled.append(search_id)
        return True

    def remove_search(self, search_id):
        self.removed.append(search_id)
        return True


@pytest.fixture
def settings():
    return SearchSettings(api_key="secret")


@pytest.fixture
def settings_factory():
    def _factory(**changes):
        return replace(SearchSettings(api_key="secret"), **changes)

    return _factory


@pytest.fixture
def fake_backend_cls():
    return FakeBackend
