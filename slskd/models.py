"""Tolerant parsing of slskd search payloads."""

from __future__ import annotations

from dataclasses import dataclass

from engine.audio_format import file_extension
from engine.search_types import RemoteFile
from slskd.errors import MalformedResponseError


def _optional_int(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _int(value, default=0):
    parsed = _optional_int(value)
    return default if parsed is None else parsed


@dataclass(frozen=True)
class SearchStatus:
    id: str
    state: str
    is_complete: bool
    file_count: int
    response_count: int

    @property
    def in_progress(self) -> bool:
        if self.is_complete:
            return False
        return "completed" not in self.state.lower()

    @classmethod
    def from_payload(cls, payload) -> "SearchStatus":
        if not isinstance(payload, dict) or not payload.get("id"):
            raise MalformedResponseError(f"search status payload is not a search object: {payload!r:.200}")
        return cls(
            id=str(payload["id"]),
            state=str(payload.get("state") or ""),
            is_complete=bool(payload.get("isComplete", False)),
            file_count=_int(payload.get("fileCount")),
            response_count=_int(payload.get("responseCount")),
        )


def parse_remote_file(payload, *, locked=False) -> RemoteFile:
    if not isinstance(payload, dict) or not payload.get("filename"):
        raise MalformedResponseError(f"file entry without filename: {payload!r:.200}")
    filename = str(payload["filename"])
    return RemoteFile(
        filename=filename,
        size=_int(payload.get("size")),
        bit_rate=_optional_int(payload.get("bitRate")),
        bit_depth=_optional_int(payload.get("bitDepth")),
        sample_rate=_optional_int(payload.get("sampleRate")),
        length=_optional_int(payload.get("length")),
        extension=file_extension(filename, payload.get("extension")) or None,
        is_locked=locked or bool(payload.get("isLocked", False)),
    )


@dataclass(frozen=True)
class PeerResponse:
    username: str
    files: tuple[RemoteFile, ...]
    locked_files: tuple[RemoteFile, ...] = ()
    has_free_upload_slot: bool = False
    upload_speed: int = 0
    queue_length: int = 0
    file_count: int = 0
    locked_file_count: int = 0

    @property
    def all_files(self) -> tuple[RemoteFile, ...]:
        return self.files + self.locked_files

    @classmethod
    def from_payload(cls, payload) -> "PeerResponse":
        if not isinstance(payload, dict) or not payload.get("username"):
            raise MalformedResponseError(f"peer response without username: {payload!r:.200}")
        raw_files = payload.get("files") or []
        raw_locked = payload.get("lockedFiles") or []
        if not isinstance(raw_files, list) or not isinstance(raw_locked, list):
            raise MalformedResponseError(f"peer response files are not lists for {payload.get('username')}")
        files = tuple(parse_remote_file(item) for item in raw_files)
        locked = tuple(parse_remote_file(item, locked=True) for item in raw_locked)
        return cls(
            username=str(payload["username"]),
            files=files,
            locked_files=locked,
            has_free_upload_slot=bool(payload.get("hasFreeUploadSlot", False)),
            upload_speed=_int(payload.get("uploadSpeed")),
            queue_length=_int(payload.get("queueLength")),
            file_count=_int(payload.get("fileCount"), len(files)),
            locked_file_count=_int(payload.get("lockedFileCount"), len(locked)),
        )


def parse_responses(payload) -> list[PeerResponse]:
    if isinstance(payload, dict):
        payload = payload.get("responses")
    if not isinstance(payload, list):
        raise MalformedResponseError("search responses payload is not a list")
    return [PeerResponse.from_payload(item) for item in payload]
