from conftest import make_file, make_response

from engine.result_reconciler import ResultReconciler, estimate_bitrate, match_album
from engine.search_types import SearchQuery
from engine.text_processing import normalize_for_matching
from slskd.models import PeerResponse

WALL_DIR = "@@share\\Music\\Pink Floyd\\The Wall (1979)"


def _query(artist="Pink Floyd", album="The Wall", track_count=12):
    return SearchQuery(
        artist=artist,
        album=album,
        interactive=False,
        expand_directory=False,
        track_count=track_count,
        search_text=f"{artist or ''} {album or ''}".strip(),
    )


def _response(username, files, locked=()):
    return PeerResponse.from_payload({"username": username, "files": list(files), "lockedFiles": list(locked)})


def test_builds_candidate_from_matching_folder(settings) -> None:
    reconciler = ResultReconciler(settings)
    candidates = reconciler.reconcile(
        [make_response("alice", WALL_DIR, 12)],
        _query(),
        search_id="search-1",
        info_url="http://localhost:5030/searches/search-1",
    )
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.artist == "Pink Floyd"
    assert candidate.album == "The Wall"
    assert candidate.year == "1979"
    assert candidate.codec == "FLAC"
    assert candidate.bitrate == 1000
    assert candidate.size == 12 * 30_000_000
    assert candidate.duration == 12 * 240
    assert candidate.track_count == 12
    assert candidate.score == 6167
    assert candidate.username == "alice"
    assert candidate.directory == WALL_DIR
    assert candidate.search_id == "search-1"
    assert candidate.to_dict()["info_url"] == "http://localhost:5030/searches/search-1"


def test_folder_metadata_wins_when_it_differs(settings) -> None:
    reconciler = ResultReconciler(settings)
    candidates = reconciler.reconcile(
        [make_response("bob", "@@share\\Music\\Roger Waters\\Amused to Death (1992)", 12)],
        _query(),
    )
    assert candidates[0].artist == "Roger Waters"
    assert candidates[0].album == "Amused to Death"
    assert candidates[0].year == "1992"


def test_lossy_bitrate_estimate_snaps_to_standard_value(settings) -> None:
    assert estimate_bitrate(7_680_000, 240) == 256
    assert estimate_bitrate(100, 0) is None
    reconciler = ResultReconciler(settings)
    response = make_response("carol", "Music\\Some Album", 1, ext="mp3", size=7_700_000)
    candidate = reconciler.reconcile([response], _query(track_count=0))[0]
    assert candidate.codec == "MP3"
    assert candidate.bitrate == 256


def test_reported_bitrate_preferred_over_estimate(settings) -> None:
    reconciler = ResultReconciler(settings)
    response = make_response("carol", "Music\\Some Album", 3, ext="mp3", bit_rate=320)
    assert reconciler.reconcile([response], _query(track_count=0))[0].bitrate == 320


def test_ignored_users_are_skipped(settings) -> None:
    reconciler = ResultReconciler(settings, ignored_users=["Alice"])
    responses = [make_response("alice", WALL_DIR, 12), make_response("bob", WALL_DIR, 12)]
    assert [candidate.username for candidate in reconciler.reconcile(responses, _query())] == ["bob"]


def test_small_responses_are_skipped(settings_factory) -> None:
    reconciler = ResultReconciler(settings_factory(minimum_response_file_count=5))
    assert reconciler.reconcile([make_response("alice", WALL_DIR, 3)], _query()) == []


def test_filter_less_files_than_album(settings, settings_factory) -> None:
    response = make_response("alice", WALL_DIR, 10)
    assert len(ResultReconciler(settings).reconcile([response], _query())) == 1
    strict = ResultReconciler(settings_factory(filter_less_files_than_album=True))
    assert strict.reconcile([response], _query()) == []


def test_file_type_filtering(settings, settings_factory) -> None:
    files = [
        make_file("Music\\Album\\01 - Song.flac"),
        make_file("Music\\Album\\cover.jpg"),
        make_file("Music\\Album\\album.cue"),
    ]
    query = _query(track_count=0)
    default = ResultReconciler(settings).reconcile([_response("alice", files)], query)
    assert default[0].track_count == 1
    with_cue = ResultReconciler(settings_factory(include_file_extensions=("cue",)))
    assert with_cue.reconcile([_response("alice", files)], query)[0].track_count == 2
    everything = ResultReconciler(settings_factory(only_audio_files=False))
    assert everything.reconcile([_response("alice", files)], query)[0].track_count == 3


def test_locked_files_lower_score_and_are_excluded(settings) -> None:
    files = [make_file(f"{WALL_DIR}\\{index:02d} - Track.flac") for index in range(1, 11)]
    locked = [make_file(f"{WALL_DIR}\\{index:02d} - Track.flac") for index in range(11, 13)]
    reconciler = ResultReconciler(settings)
    partly_locked = reconciler.reconcile([_response("alice", files, locked)], _query())[0]
    assert partly_locked.track_count == 10
    open_folder = reconciler.reconcile([make_response("bob", WALL_DIR, 12)], _query())[0]
    assert partly_locked.score < open_folder.score


def test_fully_locked_directory_is_dropped(settings) -> None:
    locked = [make_file(f"{WALL_DIR}\\{index:02d} - Track.flac") for index in range(1, 13)]
    assert ResultReconciler(settings).reconcile([_response("alice", [], locked)], _query()) == []


def test_candidates_sorted_by_score(settings) -> None:
    responses = [
        make_response("slow", WALL_DIR, 12, queue_length=30),
        make_response("fast", WALL_DIR, 12, free_slot=True, upload_speed=1024 * 1024),
        make_response("partial", "Music\\Pink Floyd - The Wall", 8),
    ]
    candidates = ResultReconciler(settings).reconcile(responses, _query())
    assert [candidate.username for candidate in candidates] == ["fast", "slow", "partial"]


def test_one_response_can_yield_several_folders(settings) -> None:
    files = [make_file(f"{WALL_DIR}\\CD1\\{index:02d}.flac") for index in range(1, 7)]
    files += [make_file(f"{WALL_DIR}\\CD2\\{index:02d}.flac") for index in range(1, 7)]
    candidates = ResultReconciler(settings).reconcile([_response("alice", files)], _query(track_count=6))
    assert sorted(candidate.directory for candidate in candidates) == [f"{WALL_DIR}\\CD1", f"{WALL_DIR}\\CD2"]


def test_album_volume_numbers_must_agree() -> None:
    album = "Now That's What I Call Music Vol. 3"
    for folder, expected in (
        ("Music\\Now That's What I Call Music Vol. 3", True),
        ("Music\\Now That's What I Call Music Volume III", True),
        ("Music\\Now That's What I Call Music Vol. 4", False),
    ):
        norm = normalize_for_matching(folder.replace("\\", " "))
        assert match_album(folder, norm, album) is expected
