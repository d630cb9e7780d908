from __future__ import annotations

import logging

from rapidfuzz import fuzz

from engine.search_types import (
    RELEASE_TYPE_EP,
    RELEASE_TYPE_SINGLE,
    QueryType,
    SearchContext,
    normalize_release_type,
)
from engine.text_processing import (
    has_diacritics,
    has_punctuation,
    has_roman_numeral,
    has_volume,
    normalize_name,
    normalize_search_text,
)

logger = logging.getLogger(__name__)

VARIOUS_ARTISTS_NAMES = frozenset(
    name.casefold()
    for name in (
        "Various Artists",
        "VA",
        "V.A.",
        "V/A",
        "Various",
        "Soundtrack",
        "OST",
        "Original Soundtrack",
        "Compilation",
        "Mixed By",
        "DJ Mix",
    )
)

SELF_TITLED_FUZZY_THRESHOLD = 90
SHORT_NAME_THRESHOLD = 4
_PREFIX_MIN_LENGTH = 3


def is_various_artists(artist):
    if not artist or not str(artist).strip():
        return False
    return str(artist).strip().casefold() in VARIOUS_ARTISTS_NAMES


def is_self_titled(artist, album):
    if not artist or not album or not str(artist).strip() or not str(album).strip():
        return False
    norm_artist = normalize_name(artist)
    norm_album = normalize_name(album)
    if not norm_artist or not norm_album:
        return False
    if norm_artist == norm_album:
        return True
    if fuzz.token_set_ratio(norm_album, norm_artist) >= SELF_TITLED_FUZZY_THRESHOLD:
        return True
    if len(norm_artist) >= _PREFIX_MIN_LENGTH and len(norm_album) >= _PREFIX_MIN_LENGTH:
        shorter, longer = sorted((norm_artist, norm_album), key=len)
        if longer.startswith(shorter):
            return True
    return False


def is_short_name(album):
    if not album or not str(album).strip():
        return False
    return len(str(album).strip()) < SHORT_NAME_THRESHOLD


def needs_type_disambiguation(artist, album, primary_type):
    if normalize_release_type(primary_type) not in {RELEASE_TYPE_EP, RELEASE_TYPE_SINGLE}:
        return False
    if is_short_name(album) or is_self_titled(artist, album):
        return True
    text = str(album or "").strip()
    return not text or " " not in text


def needs_normalization(artist, album):
    return any(has_diacritics(value) or has_punctuation(value) for value in (artist, album))


def analyze_query(context: SearchContext) -> QueryType:
    """Classify a request into its query-type traits."""
    query_type = QueryType.NORMAL
    if is_various_artists(context.artist):
        query_type |= QueryType.VARIOUS_ARTISTS
    if is_self_titled(context.artist, context.album):
        query_type |= QueryType.SELF_TITLED
    if is_short_name(context.album):
        query_type |= QueryType.SHORT_NAME
    if needs_type_disambiguation(context.artist, context.album, context.primary_type):
        query_type |= QueryType.NEEDS_TYPE_DISAMBIGUATION
    if has_volume(context.album):
        query_type |= QueryType.HAS_VOLUME
    if has_roman_numeral(context.album):
        query_type |= QueryType.HAS_ROMAN_NUMERAL
    if needs_normalization(context.artist, context.album):
        query_type |= QueryType.NEEDS_NORMALIZATION
    return query_type


def normalize_context(context: SearchContext, query_type: QueryType) -> SearchContext:
    """Attach the analyzed traits and, when enabled, normalized artist/album text.

    The trait set passed in is stored as-is; normalization only rewrites text.
    """
    context = context.with_updates(query_type=query_type)
    settings = context.settings
    strip_marks = settings.normalize_special_characters
    strip_punct = settings.strip_punctuation
    if not query_type & QueryType.NEEDS_NORMALIZATION or not (strip_marks or strip_punct):
        return context

    changes = {}
    for field_name in ("artist", "album"):
        raw = getattr(context, field_name)
        if not raw:
            continue
        normalized = normalize_search_text(raw, strip_marks=strip_marks, strip_punct=strip_punct)
        if normalized and normalized != raw:
            changes[f"normalized_{field_name}"] = normalized
    if not changes:
        return context
    logger.debug(
        "Normalized search text: '%s' / '%s'",
        changes.get("normalized_artist", context.artist),
        changes.get("normalized_album", context.album),
    )
    return context.with_updates(**changes)
