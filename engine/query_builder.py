from __future__ import annotations

import re

from engine.text_processing import collapse_whitespace, has_volume, normalize_volume

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "of", "at", "by", "for", "with",
        "as", "to", "in", "on", "is", "are", "was", "were", "be", "been",
        "being", "have", "has", "had", "do", "does", "did", "from", "into",
    }
)

MIN_WORD_LENGTH_FOR_WILDCARD = 4
MIN_ALBUM_LENGTH_FOR_PARTIAL = 15
MIN_WORDS_FOR_PARTIAL = 2
MIN_PARTIAL_LENGTH = 5
MAX_DISTINCTIVE_WORDS = 3

_PARENTHESES_RE = re.compile(r"\([^)]*\)|\[[^\]]*\]")
_VOLUME_TOKENS = frozenset({"vol", "vol.", "volume", "part", "pt", "pt.", "chapter", "disc", "cd", "edition"})


def _is_stop_word(word: str) -> bool:
    return word.casefold() in STOP_WORDS


def build_query(*parts: str | None) -> str:
    return " ".join(str(part).strip() for part in parts if part is not None and str(part).strip())


def build_wildcard(text: str | None) -> str:
    words = str(text or "").split()
    for index, word in enumerate(words):
        if len(word) >= MIN_WORD_LENGTH_FOR_WILDCARD and not _is_stop_word(word):
            words[index] = word[:-1] + "*"
    return " ".join(words)


def build_partial(text: str | None) -> str | None:
    """Leading half of the album's words, or None when that adds nothing."""
    text = collapse_whitespace(text)
    if len(text) < MIN_ALBUM_LENGTH_FOR_PARTIAL:
        return None
    words = text.split()
    keep = max(MIN_WORDS_FOR_PARTIAL, (len(words) + 1) // 2)
    head = words[:keep]
    while len(head) > 1 and _is_stop_word(head[-1]):
        head.pop()
    partial = " ".join(head)
    if partial.casefold() == text.casefold() or len(partial) < MIN_PARTIAL_LENGTH:
        return None
    return partial


def _is_volume_token(word: str) -> bool:
    lowered = word.lower()
    if lowered in _VOLUME_TOKENS:
        return True
    return word.isdigit() or (word.isupper() and normalize_volume(word).isdigit())


def extract_distinctive(text: str | None, max_words: int = MAX_DISTINCTIVE_WORDS) -> str:
    text = collapse_whitespace(text)
    if not text:
        return ""
    cleaned = collapse_whitespace(_PARENTHESES_RE.sub("", text)) or text
    words = cleaned.split()
    check_volume = has_volume(cleaned)
    candidates = [
        word
        for word in words
        if not _is_stop_word(word)
        and len(word) > 2
        and not (check_volume and _is_volume_token(word))
    ]
    if not candidates:
        return cleaned
    ranked = sorted(candidates, key=len, reverse=True)[:max_words]
    chosen = {word.casefold() for word in ranked}
    return " ".join(word for word in words if word.casefold() in chosen)
