"""Search settings, loading and validation."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import dataclass, fields, replace
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Extra wait granted once the configured search timeout is exceeded.
DEFAULT_TIMEOUT_EXTENSION_SECONDS = 10.0

# Environment overrides applied on top of the JSON config.
_ENV_OVERRIDES = {
    "SLSKD_BASE_URL": "base_url",
    "SLSKD_EXTERNAL_URL": "external_url",
    "SLSKD_API_KEY": "api_key",
    "SLSKD_SEARCH_TIMEOUT": "timeout_seconds",
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

# Host-side names that differ from ours beyond camelCase.
_ALIASES = {
    "timeout_in_seconds": "timeout_seconds",
    "normalized_seach": "normalize_special_characters",
}


@dataclass(frozen=True)
class SearchSettings:
    base_url: str = "http://localhost:5030"
    external_url: str | None = None
    api_key: str = ""
    only_audio_files: bool = True
    include_file_extensions: tuple[str, ...] = ()
    file_limit: int = 10000
    maximum_peer_queue_length: int = 1000000
    minimum_peer_upload_speed: int = 0
    minimum_response_file_count: int = 1
    filter_less_files_than_album: bool = False
    response_limit: int = 100
    timeout_seconds: float = 5.0
    timeout_extension_seconds: float = DEFAULT_TIMEOUT_EXTENSION_SECONDS
    strip_punctuation: bool = False
    handle_various_artists: bool = False
    handle_volume_variations: bool = False
    normalize_special_characters: bool = False
    use_fallback_search: bool = False
    use_track_fallback: bool = False
    append_year: bool = False
    minimum_results: int = 0
    ignore_list_path: str | None = None
    search_templates: str | None = None

    @property
    def info_base_url(self) -> str:
        return (self.external_url or self.base_url or "").rstrip("/")

    @property
    def minimum_peer_upload_speed_bytes(self) -> int:
        return int(self.minimum_peer_upload_speed) * 1024


_FIELD_TYPES = {f.name: f.type for f in fields(SearchSettings)}


def _snake_case(key):
    snake = _CAMEL_RE.sub("_", str(key)).lower()
    return _ALIASES.get(snake, snake)


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _coerce(name, value):
    kind = _FIELD_TYPES[name]
    if value is None:
        return None if "None" in kind else getattr(SearchSettings, name)
    if kind == "bool":
        return _as_bool(value)
    if kind == "int":
        return int(value)
    if kind == "float":
        return float(value)
    if kind.startswith("tuple"):
        if isinstance(value, str):
            value = [part for part in re.split(r"[,\s]+", value) if part]
        return tuple(str(part).strip() for part in value if str(part).strip())
    text = str(value).strip()
    if "None" in kind and not text:
        return None
    return text


def settings_from_dict(payload, *, base=None):
    """Build settings from a loose mapping, ignoring unknown keys."""
    settings = base or SearchSettings()
    if not isinstance(payload, dict):
        return settings
    changes = {}
    for key, value in payload.items():
        name = _snake_case(key)
        if name not in _FIELD_TYPES:
            logger.warning("Ignoring unknown search setting '%s'", key)
            continue
        try:
            changes[name] = _coerce(name, value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid value for search setting '%s': %r", key, value)
    return replace(settings, **changes)


def load_config(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_settings(path=None, *, environ=None):
    environ = os.environ if environ is None else environ
    path = path or environ.get("SLSKD_CONFIG_PATH")
    payload = {}
    if path:
        payload = load_config(path)
        if not isinstance(payload, dict):
            raise ValueError(f"search config must be a JSON object: {path}")
        payload = payload.get("slskd", payload)
    overrides = {
        field_name: environ[env_key]
        for env_key, field_name in _ENV_OVERRIDES.items()
        if environ.get(env_key)
    }
    payload = {**payload, **overrides}
    return settings_from_dict(payload)


def _is_root_url(value):
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_settings(settings):
    errors = []
    if not settings.base_url or not _is_root_url(settings.base_url):
        errors.append("base_url must be a valid http(s) URL")
    elif settings.base_url.endswith("/"):
        errors.append("base_url must not end with a slash ('/')")
    if settings.external_url:
        if not _is_root_url(settings.external_url) or settings.external_url.endswith("/"):
            errors.append("external_url must be a valid URL and must not end with a slash ('/')")
    if not settings.api_key:
        errors.append("api_key is required")
    if settings.file_limit < 1:
        errors.append("file_limit must be at least 1")
    if settings.maximum_peer_queue_length < 100:
        errors.append("maximum_peer_queue_length must be at least 100")
    if settings.minimum_peer_upload_speed < 0:
        errors.append("minimum_peer_upload_speed must be a non-negative value")
    if settings.minimum_response_file_count < 1:
        errors.append("minimum_response_file_count must be at least 1")
    if settings.response_limit < 1:
        errors.append("response_limit must be at least 1")
    if settings.timeout_seconds < 2.0:
        errors.append("timeout_seconds must be at least 2 seconds")
    if settings.timeout_extension_seconds < 0:
        errors.append("timeout_extension_seconds must be a non-negative value")
    if settings.use_track_fallback and not settings.use_fallback_search:
        errors.append("use_track_fallback cannot be enabled without use_fallback_search")
    if settings.minimum_results < 0:
        errors.append("minimum_results must be at least 0")
    if any("." in ext for ext in settings.include_file_extensions):
        errors.append("include_file_extensions must not contain a dot ('.')")
    return errors


_IGNORE_LIST_CACHE: dict[str, tuple[frozenset[str], int]] = {}
_IGNORE_LIST_LOCK = threading.Lock()


def parse_ignore_list(content):
    if not content or not content.strip():
        return frozenset()
    return frozenset(
        name.strip().casefold()
        for name in re.split(r"[\t\r\n]+", content)
        if name.strip()
    )


def load_ignore_list(path):
    """Return the casefolded usernames listed in ``path``, or None when unavailable."""
    if not path or not os.path.isfile(path):
        return None
    try:
        size = os.path.getsize(path)
        with _IGNORE_LIST_LOCK:
            cached = _IGNORE_LIST_CACHE.get(path)
            if cached and cached[1] == size:
                return cached[0]
        with open(path, "r", encoding="utf-8") as f:
            users = parse_ignore_list(f.read())
    except OSError:
        logger.warning("Failed to load ignore list from %s", path, exc_info=True)
        return None
    with _IGNORE_LIST_LOCK:
        _IGNORE_LIST_CACHE[path] = (users, size)
    logger.debug("Loaded ignore list with %d users from %s", len(users), path)
    return users


def invalidate_ignore_list(path):
    with _IGNORE_LIST_LOCK:
        _IGNORE_LIST_CACHE.pop(path, None)
