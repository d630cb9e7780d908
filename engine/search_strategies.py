"""Query-generation strategies.

Each strategy is stateless: it decides from the request alone whether it
applies and produces at most one search text. Returning None means the
strategy has nothing to add for this request.
"""

from __future__ import annotations

from engine.query_builder import build_partial, build_query, build_wildcard, extract_distinctive
from engine.search_templates import apply_template, parse_templates
from engine.search_types import QueryType, SearchTier
from engine.text_processing import convert_roman_numeral, generate_volume_variations

MIN_ALIAS_LENGTH = 4
MIN_TRACK_LENGTH = 5
MIN_WILDCARD_TERM_LENGTH = 3
MIN_PARTIAL_ALBUM_LENGTH = 15
MIN_DISTINCTIVE_ALBUM_LENGTH = 10


def _text_length(value):
    return len(value.strip()) if value and value.strip() else 0


class SearchStrategy:
    name = ""
    tier = SearchTier.BASE
    priority = 0

    @property
    def sort_key(self):
        return (int(self.tier), self.priority)

    def is_enabled(self, settings):
        return True

    def can_execute(self, context, query_type):
        raise NotImplementedError

    def get_query(self, context, query_type):
        raise NotImplementedError

    def __repr__(self):
        return f"<{type(self).__name__} tier={self.tier.name} priority={self.priority}>"


class TemplateStrategy(SearchStrategy):
    name = "Template"
    tier = SearchTier.SPECIAL
    priority = 0

    def is_enabled(self, settings):
        return bool(settings.search_templates and settings.search_templates.strip())

    def can_execute(self, context, query_type):
        return bool(parse_templates(context.settings.search_templates))

    def get_query(self, context, query_type):
        for template in parse_templates(context.settings.search_templates):
            result = apply_template(template, context)
            if result:
                return result
        return None


class VariousArtistsStrategy(SearchStrategy):
    name = "Various Artists"
    tier = SearchTier.SPECIAL
    priority = 10

    def can_execute(self, context, query_type):
        return bool(query_type & QueryType.VARIOUS_ARTISTS) and _text_length(context.search_album) > 0

    def get_query(self, context, query_type):
        # Without compilation handling the literal artist stays in the query.
        prefix = None if context.settings.handle_various_artists else context.artist
        if context.has_valid_year:
            return build_query(prefix, context.search_album, context.year, context.release_type_tag)
        if context.needs_type_disambiguation:
            return build_query(prefix, context.search_album, context.release_type_tag)
        return build_query(prefix, context.search_album)


class SelfTitledStrategy(SearchStrategy):
    name = "Self-Titled"
    tier = SearchTier.SPECIAL
    priority = 20

    def can_execute(self, context, query_type):
        return (
            bool(query_type & QueryType.SELF_TITLED)
            and not query_type & QueryType.VARIOUS_ARTISTS
            and _text_length(context.search_artist) > 0
        )

    def get_query(self, context, query_type):
        if context.has_valid_year:
            return build_query(context.search_artist, context.year, context.release_type_tag)
        if context.needs_type_disambiguation:
            return build_query(context.search_artist, context.release_type_tag)
        return build_query(context.search_artist)


class ShortNameStrategy(SearchStrategy):
    name = "Short Name"
    tier = SearchTier.SPECIAL
    priority = 30

    def can_execute(self, context, query_type):
        return (
            bool(query_type & QueryType.SHORT_NAME)
            and not query_type & QueryType.VARIOUS_ARTISTS
            and not query_type & QueryType.SELF_TITLED
        )

    def get_query(self, context, query_type):
        # Short titles need every bit of context available.
        return build_query(
            context.search_artist,
            context.search_album,
            context.year if context.has_valid_year else None,
            context.release_type_tag,
        )


class BaseStrategy(SearchStrategy):
    name = "Base Search"
    tier = SearchTier.BASE
    priority = 0

    def can_execute(self, context, query_type):
        if query_type & (QueryType.VARIOUS_ARTISTS | QueryType.SELF_TITLED | QueryType.SHORT_NAME):
            return False
        return _text_length(context.search_artist) > 0 or _text_length(context.search_album) > 0

    def get_query(self, context, query_type):
        return build_query(
            context.search_artist,
            context.search_album,
            context.year if context.settings.append_year and context.has_valid_year else None,
            context.release_type_tag if context.needs_type_disambiguation else None,
        )


class VolumeVariationStrategy(SearchStrategy):
    name = "Volume Variation"
    tier = SearchTier.VARIATION
    priority = 0

    def is_enabled(self, settings):
        return settings.handle_volume_variations

    def can_execute(self, context, query_type):
        return bool(query_type & QueryType.HAS_VOLUME) and _text_length(context.search_album) > 0

    def get_query(self, context, query_type):
        for variation in generate_volume_variations(context.search_album):
            query = build_query(context.search_artist, variation)
            if query and query not in context.processed_searches:
                return query
        return None


class RomanNumeralVariationStrategy(SearchStrategy):
    name = "Roman Numeral"
    tier = SearchTier.VARIATION
    priority = 10

    def is_enabled(self, settings):
        return settings.handle_volume_variations

    def can_execute(self, context, query_type):
        return bool(query_type & QueryType.HAS_ROMAN_NUMERAL) and _text_length(context.search_album) > 0

    def get_query(self, context, query_type):
        converted = convert_roman_numeral(context.search_album)
        if not converted:
            return None
        return build_query(context.search_artist, converted)


class WildcardStrategy(SearchStrategy):
    name = "Wildcard"
    tier = SearchTier.FALLBACK
    priority = 0

    def is_enabled(self, settings):
        return settings.use_fallback_search

    def can_execute(self, context, query_type):
        return (
            _text_length(context.search_artist) > MIN_WILDCARD_TERM_LENGTH
            or _text_length(context.search_album) > MIN_WILDCARD_TERM_LENGTH
        )

    def get_query(self, context, query_type):
        return build_query(build_wildcard(context.search_artist), build_wildcard(context.search_album))


class PartialAlbumStrategy(SearchStrategy):
    name = "Partial Album"
    tier = SearchTier.FALLBACK
    priority = 10

    def is_enabled(self, settings):
        return settings.use_fallback_search

    def can_execute(self, context, query_type):
        return _text_length(context.search_album) >= MIN_PARTIAL_ALBUM_LENGTH

    def get_query(self, context, query_type):
        partial = build_partial(context.search_album)
        if not partial:
            return None
        return build_query(context.search_artist, partial)


class DistinctiveAlbumStrategy(SearchStrategy):
    name = "Distinctive Album"
    tier = SearchTier.FALLBACK
    priority = 15

    def is_enabled(self, settings):
        return settings.use_fallback_search

    def can_execute(self, context, query_type):
        return _text_length(context.search_album) >= MIN_DISTINCTIVE_ALBUM_LENGTH

    def get_query(self, context, query_type):
        distinctive = extract_distinctive(context.search_album)
        if not distinctive or distinctive.casefold() == context.search_album.strip().casefold():
            return None
        return build_query(context.search_artist, distinctive)


class AliasStrategy(SearchStrategy):
    name = "Artist Alias"
    tier = SearchTier.FALLBACK
    priority = 20

    def is_enabled(self, settings):
        return settings.use_fallback_search

    def _usable_aliases(self, context):
        artist = (context.artist or "").strip().casefold()
        for alias in context.aliases:
            alias = (alias or "").strip()
            if len(alias) >= MIN_ALIAS_LENGTH and alias.casefold() != artist:
                yield alias

    def can_execute(self, context, query_type):
        if context.is_various_artists:
            return False
        return any(True for _ in self._usable_aliases(context))

    def get_query(self, context, query_type):
        for alias in self._usable_aliases(context):
            query = build_query(alias, context.search_album)
            if query not in context.processed_searches:
                return query
        return None


class TrackFallbackStrategy(SearchStrategy):
    name = "Track Fallback"
    tier = SearchTier.FALLBACK
    priority = 30

    def is_enabled(self, settings):
        return settings.use_track_fallback

    def _tracks(self, context):
        return [track.strip() for track in context.tracks if _text_length(track) >= MIN_TRACK_LENGTH]

    def can_execute(self, context, query_type):
        return bool(self._tracks(context))

    def get_query(self, context, query_type):
        tracks = self._tracks(context)
        if not tracks:
            return None
        # Longest title is the most distinctive anchor.
        track = max(tracks, key=len)
        return build_query(context.search_artist, track)


def default_strategies():
    return [
        TemplateStrategy(),
        VariousArtistsStrategy(),
        SelfTitledStrategy(),
        ShortNameStrategy(),
        BaseStrategy(),
        VolumeVariationStrategy(),
        RomanNumeralVariationStrategy(),
        WildcardStrategy(),
        PartialAlbumStrategy(),
        DistinctiveAlbumStrategy(),
        AliasStrategy(),
        TrackFallbackStrategy(),
    ]
