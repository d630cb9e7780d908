from __future__ import annotations

import logging
from collections import Counter

from rapidfuzz import fuzz

from engine.audio_format import (
    AudioFormat,
    audio_format_from_extension,
    file_extension,
    is_audio_extension,
    is_lossy,
    normalize_extension,
    round_to_standard_bitrate,
)
from engine.search_scoring import calculate_priority, count_audio_files
from engine.search_types import CandidateFolder, ReleaseCandidate
from engine.text_processing import find_volume, normalize_for_matching, parse_folder_name, split_remote_path

logger = logging.getLogger(__name__)

# Calibration values for folder-name reconciliation.
ARTIST_PARTIAL_THRESHOLD = 90
ARTIST_TOKEN_SORT_THRESHOLD = 85
ALBUM_PARTIAL_THRESHOLD = 85
ALBUM_TOKEN_SORT_THRESHOLD = 80
COMBINED_PARTIAL_THRESHOLD = 85

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"


def _most_common(values):
    present = [value for value in values if value is not None]
    if not present:
        return None
    return Counter(present).most_common(1)[0][0]


def _folder_name(directory):
    segments = split_remote_path(directory)
    return segments[-1] if segments else ""


def match_artist(directory_norm, artist):
    if not artist:
        return False
    artist_norm = normalize_for_matching(artist)
    if not artist_norm:
        return False
    return (
        fuzz.partial_ratio(directory_norm, artist_norm) > ARTIST_PARTIAL_THRESHOLD
        or fuzz.token_sort_ratio(directory_norm, artist_norm) > ARTIST_TOKEN_SORT_THRESHOLD
    )


def match_album(directory, directory_norm, album):
    if not album:
        return False
    search_volume = find_volume(album)
    folder_volume = find_volume(_folder_name(directory)) if search_volume else None
    if search_volume and folder_volume:
        base_score = fuzz.partial_ratio(
            normalize_for_matching(folder_volume.base_title),
            normalize_for_matching(search_volume.base_title),
        )
        return base_score > ALBUM_PARTIAL_THRESHOLD and search_volume.number == folder_volume.number
    album_norm = normalize_for_matching(album)
    if not album_norm:
        return False
    return (
        fuzz.partial_ratio(directory_norm, album_norm) > ALBUM_PARTIAL_THRESHOLD
        or fuzz.token_sort_ratio(directory_norm, album_norm) > ALBUM_TOKEN_SORT_THRESHOLD
    )


def match_combined(directory_norm, artist, album):
    if not artist or not album:
        return False
    combined = normalize_for_matching(f"{artist} {album}")
    return fuzz.partial_ratio(directory_norm, combined) > COMBINED_PARTIAL_THRESHOLD


def estimate_bitrate(total_size, total_duration):
    """kbps implied by byte size over seconds of audio, or None without a duration."""
    if total_duration <= 0:
        return None
    return total_size * 8 / (total_duration * 1000)


class ResultReconciler:
    """Turns raw peer responses into ranked release candidates."""

    def __init__(self, settings, ignored_users=None):
        self.settings = settings
        self.ignored_users = frozenset(name.casefold() for name in (ignored_users or ()))
        self._included_extensions = frozenset(
            normalize_extension(ext) for ext in settings.include_file_extensions if ext
        )

    def is_ignored(self, username):
        return bool(username) and username.casefold() in self.ignored_users

    def keep_file(self, remote_file):
        if not self.settings.only_audio_files:
            return True
        ext = file_extension(remote_file.filename, remote_file.extension)
        return is_audio_extension(ext) or ext in self._included_extensions

    def group_by_directory(self, response):
        groups = {}
        for remote_file in response.all_files:
            if not self.keep_file(remote_file):
                continue
            directory = remote_file.directory
            if not directory:
                continue
            groups.setdefault(directory, []).append(remote_file)
        return groups

    def reconcile(self, responses, query, *, search_id=None, info_url=None):
        candidates = []
        for response in responses or []:
            if self.is_ignored(response.username):
                logger.debug("Skipping ignored user %s", response.username)
                continue
            if response.file_count < self.settings.minimum_response_file_count:
                continue
            for directory, files in self.group_by_directory(response).items():
                candidate = self.build_candidate(
                    directory,
                    files,
                    response,
                    query,
                    search_id=search_id,
                    info_url=info_url,
                )
                if candidate is not None:
                    candidates.append(candidate)
        candidates.sort(key=lambda item: (item.score, item.size), reverse=True)
        return candidates

    def build_candidate(self, directory, files, response, query, *, search_id=None, info_url=None):
        folder = CandidateFolder(
            path=directory,
            username=response.username,
            files=tuple(files),
            upload_speed=response.upload_speed,
            has_free_upload_slot=response.has_free_upload_slot,
            queue_length=response.queue_length,
        )
        available = folder.available_files
        if not available:
            return None
        if self.settings.filter_less_files_than_album and query.track_count > 0:
            if count_audio_files(available) < query.track_count:
                logger.debug("Dropping %s: fewer files than the album has tracks", directory)
                return None

        parsed = parse_folder_name(directory)
        directory_norm = normalize_for_matching(" ".join(split_remote_path(directory)))
        artist_match = match_artist(directory_norm, query.artist)
        album_match = match_album(directory, directory_norm, query.album)
        if not artist_match and not album_match:
            album_match = match_combined(directory_norm, query.artist, query.album)

        artist = query.artist if artist_match else (parsed.artist or query.artist)
        album = query.album if album_match else (parsed.album or query.album)

        extension = _most_common(file_extension(item.filename, item.extension) or None for item in available)
        codec = audio_format_from_extension(extension)
        total_size = sum(item.size for item in available)
        total_duration = sum(item.length or 0 for item in available)
        bitrate = _most_common(item.bit_rate for item in available)
        if bitrate is None:
            estimated = estimate_bitrate(total_size, total_duration)
            if estimated is not None:
                bitrate = round_to_standard_bitrate(estimated) if is_lossy(codec) else int(estimated)
        bit_depth = _most_common(item.bit_depth for item in available)
        sample_rate = _most_common(item.sample_rate for item in available)

        score = calculate_priority(folder, query.track_count)
        logger.debug(
            "Reconciled %s (%s): artist_match=%s album_match=%s codec=%s score=%s",
            directory,
            response.username,
            artist_match,
            album_match,
            codec.value,
            score,
        )
        return ReleaseCandidate(
            artist=artist or UNKNOWN_ARTIST,
            album=album or UNKNOWN_ALBUM,
            year=parsed.year,
            codec=codec.value if codec is not AudioFormat.UNKNOWN else (extension or AudioFormat.UNKNOWN.value),
            bitrate=bitrate or 0,
            bit_depth=bit_depth or 0,
            sample_rate=sample_rate or 0,
            size=total_size,
            duration=total_duration,
            score=score,
            files=available,
            username=response.username,
            directory=directory,
            search_id=search_id,
            info_url=info_url,
        )
