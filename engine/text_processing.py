from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

_WS_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s\-&]")
_NAME_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_MATCH_SPECIAL_RE = re.compile(r"[^\w\s]|_")
_LEADING_ARTICLE_RE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"\b(?:the|a|an)\s+", re.IGNORECASE)
_COMBINING_CATEGORIES = frozenset({"Mn", "Mc", "Me"})

# Filler words that carry no weight when comparing folder names.
_MATCH_NOISE_WORDS = frozenset(
    {"the", "a", "an", "feat", "featuring", "ft", "presents", "pres", "with", "and"}
)

TEXT_NUMBERS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
}

ROMAN_MIN = 1
ROMAN_MAX = 5000

_ROMAN_VALUES = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000}
_ROMAN_CANONICAL = (
    ("DCCCC", "CM"),
    ("CCCC", "CD"),
    ("LXXXX", "XC"),
    ("XXXX", "XL"),
    ("VIIII", "IX"),
    ("IIII", "IV"),
)
_ROMAN_TABLE = (
    (1000, "M"),
    (900, "CM"),
    (500, "D"),
    (400, "CD"),
    (100, "C"),
    (90, "XC"),
    (50, "L"),
    (40, "XL"),
    (10, "X"),
    (9, "IX"),
    (5, "V"),
    (4, "IV"),
    (1, "I"),
)
_ROMAN_TOKEN_RE = re.compile(r"(?<![\w'])[IVXLCDM]{1,4}(?![\w'])")
# Uppercase tokens that happen to be valid numerals but are almost always words.
_ROMAN_FALSE_POSITIVES = frozenset({"CD", "DC", "MC", "MD", "DVD", "LCD", "MIX", "DIM", "CIV", "DI", "LI", "MI", "DID"})

VOLUME_FORMATS = ("Volume", "Vol.", "Vol", "V")

_VOLUME_INDICATORS = (
    "volume", "vol", "part", "pt", "chapter", "ep", "sampler", "remixes", "remix",
    "mixes", "mix", "edition", "ed", "version", "ver", "v", "release", "issue",
    "series", "no", "num", "phase", "stage", "book", "side", "disc", "cd", "dvd",
    "track", "season", "installment",
)
_INDICATOR_ALTERNATION = "|".join(sorted(_VOLUME_INDICATORS, key=len, reverse=True))
_TEXT_NUMBER_ALTERNATION = "|".join(TEXT_NUMBERS)

_VOLUME_PHRASE_RE = re.compile(
    rf"""
    (?P<indicator>\b(?:{_INDICATOR_ALTERNATION})(?![a-z])\.?|\#)
    (?P<sep>\s*)
    (?P<value>
        \d+(?:\s*-\s*\d+)?
        |(?:{_TEXT_NUMBER_ALTERNATION})
        |(?-i:[IVXLCDM]+)
    )
    (?!\w)
    """,
    re.IGNORECASE | re.VERBOSE,
)
_TRAILING_NUMBER_RE = re.compile(r"^(?P<base>.*\D)\s+(?P<value>\d{1,3})$")
_VOLUME_TRIM_RE = re.compile(r"^[\s\-,:;(\[]+|[\s\-,:;)\]]+$")

_DISC_FOLDER_RE = re.compile(r"^(?:cd|disc|disk|dvd)\s*[-_.]?\s*\d{1,2}$", re.IGNORECASE)
_BRACKET_ANNOTATION_RE = re.compile(r"\s*[\[\{](?!\s*(?:19|20)\d{2}\s*[\]\}])[^\]\}]*[\]\}]")
_QUALITY_PAREN_RE = re.compile(
    r"\s*\((?=[^)]*\b(?:flac|mp3|aac|ogg|opus|alac|wav|lossless|lossy|320|256|192|v0|v2|"
    r"24\s*-?\s*bit|16\s*-?\s*bit|kbps|cbr|vbr|web|vinyl|remaster(?:ed)?|deluxe|edition|"
    r"expanded|bonus|reissue)\b)[^)]*\)",
    re.IGNORECASE,
)
_YEAR = r"(?P<year>(?:19|20)\d{2})"
_ARTIST_ALBUM_YEAR_RE = re.compile(rf"^(?P<artist>.+?)\s+-\s+(?P<album>.+?)\s*[\(\[]\s*{_YEAR}\s*[\)\]]$")
_YEAR_ARTIST_ALBUM_RE = re.compile(rf"^[\(\[]?{_YEAR}[\)\]]?\s+-\s+(?P<artist>.+?)\s+-\s+(?P<album>.+)$")
_ALBUM_YEAR_RE = re.compile(rf"^(?P<album>.+?)\s*[\(\[]\s*{_YEAR}\s*[\)\]]$")
_YEAR_ALBUM_RE = re.compile(rf"^[\(\[]?{_YEAR}[\)\]]?\s+-\s+(?P<album>.+)$")
_ARTIST_ALBUM_RE = re.compile(r"^(?P<artist>.+?)\s+-\s+(?P<album>.+)$")
_ANY_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")

GENERIC_FOLDER_NAMES = frozenset(
    {
        "music", "flac", "mp3", "downloads", "download", "complete", "albums",
        "shared", "soulseek", "incomplete", "media", "audio", "lossless", "misc",
    }
)


def collapse_whitespace(value: str | None) -> str:
    return _WS_RE.sub(" ", str(value or "")).strip()


def has_diacritics(value: str | None) -> bool:
    decomposed = unicodedata.normalize("NFD", str(value or ""))
    return any(unicodedata.category(ch) in _COMBINING_CATEGORIES for ch in decomposed)


def has_punctuation(value: str | None) -> bool:
    return bool(_NAME_PUNCTUATION_RE.search(str(value or "")))


def strip_diacritics(value: str | None) -> str:
    decomposed = unicodedata.normalize("NFD", str(value or ""))
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) not in _COMBINING_CATEGORIES)
    return unicodedata.normalize("NFC", stripped)


def strip_punctuation(value: str | None) -> str:
    return collapse_whitespace(_PUNCTUATION_RE.sub("", str(value or "")))


def normalize_search_text(
    value: str | None,
    *,
    strip_marks: bool = True,
    strip_punct: bool = True,
) -> str:
    """Rewrite ``value`` into the form sent to the search backend.

    Leading articles are dropped whenever any rewriting is requested.
    """
    text = str(value or "")
    if strip_marks:
        text = strip_diacritics(text)
    if strip_punct:
        text = _PUNCTUATION_RE.sub("", text)
    text = collapse_whitespace(text)
    if strip_marks or strip_punct:
        stripped = _LEADING_ARTICLE_RE.sub("", text)
        text = stripped or text
    return text


def normalize_name(value: str | None) -> str:
    text = strip_diacritics(value).lower()
    text = _ARTICLE_RE.sub("", text)
    text = _NAME_PUNCTUATION_RE.sub("", text)
    return collapse_whitespace(text)


def normalize_for_matching(value: str | None) -> str:
    text = _MATCH_SPECIAL_RE.sub(" ", strip_diacritics(value).lower())
    words = [word for word in text.split() if word not in _MATCH_NOISE_WORDS]
    return " ".join(words)


def _canonical_roman(value: str) -> str:
    text = value.upper()
    for irregular, canonical in _ROMAN_CANONICAL:
        text = text.replace(irregular, canonical)
    return text


def roman_to_int(value: str | None) -> int | None:
    text = str(value or "").strip().upper()
    if not text or any(ch not in _ROMAN_VALUES for ch in text):
        return None
    text = _canonical_roman(text)
    total = 0
    previous = 0
    for ch in reversed(text):
        current = _ROMAN_VALUES[ch]
        if current < previous:
            total -= current
        else:
            total += current
            previous = current
    if total < ROMAN_MIN or total > ROMAN_MAX:
        return None
    return total


def int_to_roman(value: int) -> str | None:
    if value is None or value < ROMAN_MIN or value > ROMAN_MAX:
        return None
    remaining = int(value)
    parts: list[str] = []
    for number, numeral in _ROMAN_TABLE:
        while remaining >= number:
            parts.append(numeral)
            remaining -= number
    return "".join(parts)


def is_canonical_roman(value: str) -> bool:
    number = roman_to_int(value)
    return number is not None and int_to_roman(number) == _canonical_roman(value)


def normalize_volume(value: str | None) -> str:
    """Reduce a volume value to a comparable string ("III", "three" and "3" all give "3")."""
    text = str(value or "").strip()
    if not text:
        return ""
    lowered = text.lower()
    if lowered in TEXT_NUMBERS:
        return str(TEXT_NUMBERS[lowered])
    if text.isdigit():
        return str(int(text))
    number = roman_to_int(text)
    if number is not None:
        return str(number)
    leading = re.match(r"\d+", text)
    if leading:
        return str(int(leading.group(0)))
    return text.upper()


@dataclass(frozen=True)
class VolumeMatch:
    base_title: str
    indicator: str | None
    value: str
    start: int
    end: int

    @property
    def number(self) -> str:
        return normalize_volume(self.value)


def _clean_base_title(text: str) -> str:
    text = collapse_whitespace(text.replace("()", " ").replace("[]", " "))
    return _VOLUME_TRIM_RE.sub("", text).strip()


def find_volume(album: str | None) -> VolumeMatch | None:
    text = str(album or "")
    match = _VOLUME_PHRASE_RE.search(text)
    if match:
        base = _clean_base_title(text[: match.start()] + " " + text[match.end() :])
        return VolumeMatch(base, match.group("indicator"), match.group("value"), match.start(), match.end())
    trailing = _TRAILING_NUMBER_RE.match(text.strip())
    if trailing:
        value = trailing.group("value")
        start = text.rfind(value)
        return VolumeMatch(_clean_base_title(trailing.group("base")), None, value, start, start + len(value))
    return None


def has_volume(album: str | None) -> bool:
    return find_volume(album) is not None


def _convert_volume_value(value: str) -> str:
    lowered = value.lower()
    if lowered in TEXT_NUMBERS:
        return str(TEXT_NUMBERS[lowered])
    if value.isdigit():
        return int_to_roman(int(value)) or value
    if value.isupper():
        number = roman_to_int(value)
        if number is not None:
            return str(number)
    return value


def _swap_indicator(indicator: str) -> str:
    lowered = indicator.lower().rstrip(".")
    if lowered == "volume":
        return "Vol."
    if lowered == "vol":
        return "Volume"
    return indicator


def convert_volume_format(album: str | None, indicator: str | None = None) -> str:
    """Rewrite the volume phrase of ``album`` between Roman and Arabic numbering.

    ``indicator`` replaces the phrase's own indicator spelling when given.
    Values that cannot be converted only have their indicator rewritten.
    """
    text = str(album or "")
    match = _VOLUME_PHRASE_RE.search(text)
    if not match:
        return text
    value = match.group("value")
    converted = _convert_volume_value(value)
    current = match.group("indicator")
    if indicator is None:
        indicator = current if converted != value else _swap_indicator(current)
    sep = match.group("sep") or ("" if indicator == "#" else " ")
    return text[: match.start()] + indicator + sep + converted + text[match.end() :]


def generate_volume_variations(album: str | None) -> list[str]:
    text = str(album or "")
    match = _VOLUME_PHRASE_RE.search(text)
    variations: list[str] = []

    def _add(candidate: str) -> None:
        candidate = collapse_whitespace(candidate)
        if candidate and candidate != text and candidate not in variations:
            variations.append(candidate)

    if match:
        value = match.group("value")
        converted = _convert_volume_value(value)
        _add(convert_volume_format(text))
        head, tail = text[: match.start()], text[match.end() :]
        for spelling in VOLUME_FORMATS:
            _add(f"{head}{spelling} {value}{tail}")
            if converted != value:
                _add(f"{head}{spelling} {converted}{tail}")
    volume = find_volume(text)
    if volume and len(text.split()) > 3 and len(volume.base_title) > 10:
        _add(volume.base_title)
    return variations


def _volume_spans(text: str) -> list[tuple[int, int]]:
    return [(m.start(), m.end()) for m in _VOLUME_PHRASE_RE.finditer(text)]


def find_standalone_roman(album: str | None) -> re.Match[str] | None:
    """Return the first Roman-numeral token outside any volume phrase."""
    text = str(album or "")
    spans = _volume_spans(text)
    tokens = list(_ROMAN_TOKEN_RE.finditer(text))
    last_word = text.split()[-1] if text.split() else ""
    for token in tokens:
        numeral = token.group(0)
        if numeral in _ROMAN_FALSE_POSITIVES:
            continue
        if any(start <= token.start() < end for start, end in spans):
            continue
        if numeral == "I" and last_word != "I":
            continue
        if not is_canonical_roman(numeral):
            continue
        return token
    return None


def has_roman_numeral(album: str | None) -> bool:
    return find_standalone_roman(album) is not None


def convert_roman_numeral(album: str | None) -> str | None:
    text = str(album or "")
    token = find_standalone_roman(text)
    if token is None:
        return None
    number = roman_to_int(token.group(0))
    return text[: token.start()] + str(number) + text[token.end() :]


@dataclass(frozen=True)
class FolderInfo:
    artist: str | None = None
    album: str | None = None
    year: str | None = None


def _clean_folder_segment(segment: str) -> str:
    text = segment.replace("_", " ")
    text = _BRACKET_ANNOTATION_RE.sub(" ", text)
    text = _QUALITY_PAREN_RE.sub(" ", text)
    text = collapse_whitespace(text)
    return text.strip(" -")


def _usable_parent(parent: str | None) -> str | None:
    if not parent:
        return None
    if parent.startswith("@@") or parent.lower() in GENERIC_FOLDER_NAMES:
        return None
    if _DISC_FOLDER_RE.match(parent):
        return None
    return parent


def split_remote_path(path: str | None) -> list[str]:
    return [segment.strip() for segment in re.split(r"[\\/]+", str(path or "")) if segment.strip()]


def parse_folder_name(path: str | None) -> FolderInfo:
    """Derive artist/album/year from a remote directory path."""
    segments = split_remote_path(path)
    if not segments:
        return FolderInfo()
    if len(segments) > 1 and _DISC_FOLDER_RE.match(segments[-1]):
        segments = segments[:-1]
    name = _clean_folder_segment(segments[-1])
    parent = _usable_parent(_clean_folder_segment(segments[-2])) if len(segments) > 1 else None
    loose_year = _ANY_YEAR_RE.search(str(path or ""))
    fallback_year = loose_year.group(0) if loose_year else None

    match = _ARTIST_ALBUM_YEAR_RE.match(name)
    if match:
        return FolderInfo(match.group("artist").strip(), match.group("album").strip(), match.group("year"))
    match = _YEAR_ARTIST_ALBUM_RE.match(name)
    if match:
        return FolderInfo(match.group("artist").strip(), match.group("album").strip(), match.group("year"))
    match = _ALBUM_YEAR_RE.match(name)
    if match:
        return FolderInfo(parent, match.group("album").strip(), match.group("year"))
    match = _YEAR_ALBUM_RE.match(name)
    if match:
        return FolderInfo(parent, match.group("album").strip(), match.group("year"))
    match = _ARTIST_ALBUM_RE.match(name)
    if match:
        return FolderInfo(match.group("artist").strip(), match.group("album").strip(), fallback_year)
    return FolderInfo(parent, name or None, fallback_year)
