import json

from config.settings import (
    SearchSettings,
    invalidate_ignore_list,
    load_ignore_list,
    load_settings,
    parse_ignore_list,
    settings_from_dict,
    validate_settings,
)


def test_defaults_are_valid_once_api_key_is_set() -> None:
    assert validate_settings(SearchSettings()) == ["api_key is required"]
    assert validate_settings(SearchSettings(api_key="secret")) == []


def test_settings_from_camel_case_payload() -> None:
    settings = settings_from_dict(
        {
            "baseUrl": "http://slskd:5030",
            "apiKey": "secret",
            "fileLimit": "5000",
            "timeoutInSeconds": 12,
            "normalizedSeach": "true",
            "includeFileExtensions": "cue, log",
            "useFallbackSearch": 1,
            "somethingElse": True,
        }
    )
    assert settings.base_url == "http://slskd:5030"
    assert settings.file_limit == 5000
    assert settings.timeout_seconds == 12.0
    assert settings.normalize_special_characters is True
    assert settings.include_file_extensions == ("cue", "log")
    assert settings.use_fallback_search is True


def test_invalid_values_are_ignored() -> None:
    settings = settings_from_dict({"file_limit": "lots", "external_url": ""})
    assert settings.file_limit == 10000
    assert settings.external_url is None


def test_load_settings_from_file_with_env_overrides(tmp_path) -> None:
    path = tmp_path / "slskd.json"
    path.write_text(json.dumps({"slskd": {"base_url": "http://nas:5030", "api_key": "from-file", "append_year": True}}))
    settings = load_settings(str(path), environ={"SLSKD_API_KEY": "from-env", "SLSKD_SEARCH_TIMEOUT": "9"})
    assert settings.base_url == "http://nas:5030"
    assert settings.api_key == "from-env"
    assert settings.timeout_seconds == 9.0
    assert settings.append_year is True


def test_load_settings_path_from_environment(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"apiKey": "k", "minimumResults": 3}))
    settings = load_settings(environ={"SLSKD_CONFIG_PATH": str(path)})
    assert settings.api_key == "k"
    assert settings.minimum_results == 3


def test_load_settings_without_config_uses_defaults() -> None:
    assert load_settings(environ={}) == SearchSettings()


def test_validation_messages() -> None:
    errors = validate_settings(
        SearchSettings(
            base_url="http://slskd:5030/",
            external_url="ftp://example.com",
            api_key="k",
            timeout_seconds=1,
            use_track_fallback=True,
            include_file_extensions=(".cue",),
            maximum_peer_queue_length=10,
        )
    )
    assert "base_url must not end with a slash ('/')" in errors
    assert "external_url must be a valid URL and must not end with a slash ('/')" in errors
    assert "timeout_seconds must be at least 2 seconds" in errors
    assert "use_track_fallback cannot be enabled without use_fallback_search" in errors
    assert "include_file_extensions must not contain a dot ('.')" in errors
    assert "maximum_peer_queue_length must be at least 100" in errors


def test_invalid_base_url() -> None:
    assert "base_url must be a valid http(s) URL" in validate_settings(SearchSettings(base_url="slskd", api_key="k"))


def test_info_base_url_prefers_external_url() -> None:
    assert SearchSettings().info_base_url == "http://localhost:5030"
    assert SearchSettings(external_url="https://music.example.com").info_base_url == "https://music.example.com"
    assert SearchSettings(minimum_peer_upload_speed=2).minimum_peer_upload_speed_bytes == 2048


def test_parse_ignore_list() -> None:
    assert parse_ignore_list("Alice\r\nbob\tCAROL\n\n") == frozenset({"alice", "bob", "carol"})
    assert parse_ignore_list("   ") == frozenset()


def test_ignore_list_cache_refreshes_when_file_changes(tmp_path) -> None:
    path = tmp_path / "ignore.txt"
    path.write_text("alice\n")
    assert load_ignore_list(str(path)) == frozenset({"alice"})
    path.write_text("alice\nbobby\n")
    assert load_ignore_list(str(path)) == frozenset({"alice", "bobby"})
    invalidate_ignore_list(str(path))
    assert load_ignore_list(str(path)) == frozenset({"alice", "bobby"})


def test_missing_ignore_list(tmp_path) -> None:
    assert load_ignore_list(str(tmp_path / "absent.txt")) is None
    assert load_ignore_list(None) is None
