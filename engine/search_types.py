"""Value types shared by the search pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from config.settings import SearchSettings

RELEASE_TYPE_ALBUM = "Album"
RELEASE_TYPE_EP = "EP"
RELEASE_TYPE_SINGLE = "Single"


class QueryType(enum.IntFlag):
    NORMAL = 0
    SELF_TITLED = 1 << 0
    SHORT_NAME = 1 << 1
    VARIOUS_ARTISTS = 1 << 2
    HAS_VOLUME = 1 << 3
    HAS_ROMAN_NUMERAL = 1 << 4
    NEEDS_NORMALIZATION = 1 << 5
    NEEDS_TYPE_DISAMBIGUATION = 1 << 6


class SearchTier(enum.IntEnum):
    SPECIAL = 0
    BASE = 1
    VARIATION = 2
    FALLBACK = 3


def normalize_release_type(value):
    text = str(value or "").strip().lower()
    if text == "ep":
        return RELEASE_TYPE_EP
    if text == "single":
        return RELEASE_TYPE_SINGLE
    if text == "album":
        return RELEASE_TYPE_ALBUM
    return str(value).strip() if value else None


@dataclass(frozen=True)
class SearchContext:
    """One album search request.

    ``processed_searches`` is the only mutable member. It is owned by the
    request and shared by every copy made with :meth:`with_updates`.
    """

    artist: str | None
    album: str | None
    year: str | None = None
    interactive: bool = False
    track_count: int = 0
    primary_type: str | None = None
    aliases: tuple[str, ...] = ()
    tracks: tuple[str, ...] = ()
    settings: SearchSettings = field(default_factory=SearchSettings)
    processed_searches: set[str] = field(default_factory=set, compare=False, repr=False)
    query_type: QueryType = QueryType.NORMAL
    normalized_artist: str | None = None
    normalized_album: str | None = None

    @property
    def is_various_artists(self) -> bool:
        return bool(self.query_type & QueryType.VARIOUS_ARTISTS)

    @property
    def is_self_titled(self) -> bool:
        return bool(self.query_type & QueryType.SELF_TITLED)

    @property
    def is_short_name(self) -> bool:
        return bool(self.query_type & QueryType.SHORT_NAME)

    @property
    def needs_type_disambiguation(self) -> bool:
        return bool(self.query_type & QueryType.NEEDS_TYPE_DISAMBIGUATION)

    @property
    def search_artist(self) -> str | None:
        if self.is_various_artists:
            return None
        return self.normalized_artist or self.artist

    @property
    def search_album(self) -> str | None:
        return self.normalized_album or self.album

    @property
    def has_valid_year(self) -> bool:
        year = str(self.year or "").strip()
        return bool(year) and year != "0"

    @property
    def release_type_tag(self) -> str | None:
        release_type = normalize_release_type(self.primary_type)
        if release_type in {RELEASE_TYPE_EP, RELEASE_TYPE_SINGLE}:
            return release_type
        return None

    def with_updates(self, **changes) -> "SearchContext":
        return replace(self, **changes)


@dataclass(frozen=True)
class SearchQuery:
    artist: str | None
    album: str | None
    interactive: bool
    expand_directory: bool
    track_count: int
    search_text: str

    @classmethod
    def from_context(cls, context: SearchContext, search_text: str) -> "SearchQuery":
        return cls(
            artist=context.search_artist,
            album=context.search_album,
            interactive=context.interactive,
            expand_directory=False,
            track_count=context.track_count,
            search_text=search_text,
        )


@dataclass(frozen=True)
class RemoteFile:
    filename: str
    size: int = 0
    bit_rate: int | None = None
    bit_depth: int | None = None
    sample_rate: int | None = None
    length: int | None = None
    extension: str | None = None
    is_locked: bool = False

    @property
    def directory(self) -> str:
        index = self.filename.rfind("\\")
        return self.filename[:index] if index >= 0 else ""


@dataclass(frozen=True)
class CandidateFolder:
    """Files of one remote directory together with the sharing peer's state."""

    path: str
    username: str
    files: tuple[RemoteFile, ...]
    upload_speed: int = 0
    has_free_upload_slot: bool = False
    queue_length: int = 0

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def locked_file_count(self) -> int:
        return sum(1 for item in self.files if item.is_locked)

    @property
    def available_files(self) -> tuple[RemoteFile, ...]:
        return tuple(item for item in self.files if not item.is_locked)


@dataclass(frozen=True)
class ReleaseCandidate:
    artist: str
    album: str
    year: str | None
    codec: str
    bitrate: int
    bit_depth: int
    sample_rate: int
    size: int
    duration: int
    score: int
    files: tuple[RemoteFile, ...]
    username: str
    directory: str
    search_id: str | None = None
    info_url: str | None = None

    @property
    def track_count(self) -> int:
        return len(self.files)

    def to_dict(self) -> dict:
        return {
            "artist": self.artist,
            "album": self.album,
            "year": self.year,
            "codec": self.codec,
            "bitrate": self.bitrate,
            "bit_depth": self.bit_depth,
            "sample_rate": self.sample_rate,
            "size": self.size,
            "duration": self.duration,
            "score": self.score,
            "username": self.username,
            "directory": self.directory,
            "search_id": self.search_id,
            "info_url": self.info_url,
            "files": [
                {
                    "filename": item.filename,
                    "size": item.size,
                    "bit_rate": item.bit_rate,
                    "bit_depth": item.bit_depth,
                    "sample_rate": item.sample_rate,
                    "length": item.length,
                    "extension": item.extension,
                }
                for item in self.files
            ],
        }
