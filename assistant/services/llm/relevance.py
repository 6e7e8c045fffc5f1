"""Keyword relevance scoring for narrowing the song set in full-context mode.

This is a best-effort heuristic. It ranks songs by literal keyword hits in
their metadata and lyrics; it does not understand synonyms, stemming or
meaning, and a song can be relevant to a question without scoring at all.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from assistant.services.library import Song

MAX_KEYWORDS = 10
GENERIC_SAMPLE_SIZE = 20
FALLBACK_SAMPLE_SIZE = 10

STOP_WORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "from", "by", "about", "into", "through", "during", "including", "against",
    "among", "throughout", "despite", "towards", "upon", "concerning", "up",
    "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
    "do", "does", "did", "will", "would", "should", "could", "may", "might",
    "must", "can", "this", "that", "these", "those", "what", "which", "who",
    "where", "when", "why", "how", "find", "show", "list", "search", "song",
    "songs", "track", "tracks",
})

MARKERS = ("about", "with", "containing", "mentioning", "related to", "theme", "topic")

_QUOTED = re.compile(r"\"([^\"]+)\"|(?<!\w)'([^']+)'(?!\w)")
_MARKER_PATTERNS = [
    re.compile(rf"\b{re.escape(marker)}\s+([^?.,!]+)", re.IGNORECASE) for marker in MARKERS
]
_NON_WORD = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class RelevanceWeights:
    """Points awarded per keyword hit. Empirical values, safe to tune."""

    title: int = 10
    artist: int = 8
    album: int = 6
    lyrics_per_occurrence: int = 2
    lyrics_cap: int = 10
    resource: int = 3


DEFAULT_WEIGHTS = RelevanceWeights()


def _clean_tokens(text: str) -> list[str]:
    tokens = (_NON_WORD.sub("", word) for word in text.lower().split())
    return [token for token in tokens if token]


def extract_keywords(question: str) -> list[str]:
    """Pull search keywords out of a free-text question."""
    keywords: list[str] = []

    for match in _QUOTED.finditer(question):
        term = (match.group(1) or match.group(2) or "").strip()
        if len(term) > 2:
            keywords.append(term)

    for pattern in _MARKER_PATTERNS:
        for match in pattern.finditer(question):
            for token in _clean_tokens(match.group(1)):
                if token not in STOP_WORDS:
                    if len(token) > 2:
                        keywords.append(token)
                    break

    for token in _clean_tokens(question):
        if len(token) >= 3 and token not in STOP_WORDS:
            keywords.append(token)

    seen: set[str] = set()
    unique: list[str] = []
    for keyword in keywords:
        key = keyword.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(keyword)
    return unique[:MAX_KEYWORDS]


def count_occurrences(text: str | None, keyword: str) -> int:
    """Case-insensitive count of non-overlapping literal occurrences."""
    if not text or not keyword:
        return 0
    return text.lower().count(keyword.lower())


def score_song(
    song: Song,
    keywords: Iterable[str],
    weights: RelevanceWeights = DEFAULT_WEIGHTS,
) -> int:
    title = (song.title or "").lower()
    artist = (song.artist or "").lower()
    album = (song.album or "").lower()

    score = 0
    for keyword in keywords:
        term = keyword.lower()
        if not term:
            continue
        if term in title:
            score += weights.title
        if term in artist:
            score += weights.artist
        if term in album:
            score += weights.album

        hits = count_occurrences(song.lyrics, term)
        score += min(hits * weights.lyrics_per_occurrence, weights.lyrics_cap)

        for resource in song.resources:
            name = (resource.name or "").lower()
            description = (resource.description or "").lower()
            if term in name or term in description:
                score += weights.resource
    return score


def filter_relevant_songs(
    songs: Sequence[Song],
    question: str,
    max_results: int,
    weights: RelevanceWeights = DEFAULT_WEIGHTS,
) -> list[Song]:
    """Select the songs most plausibly relevant to ``question``.

    Never returns an empty list for a non-empty library: a generic question
    yields the first GENERIC_SAMPLE_SIZE songs, and a question whose keywords
    match nothing yields the first FALLBACK_SAMPLE_SIZE songs.
    """
    if not songs:
        return []

    keywords = extract_keywords(question)
    if not keywords:
        return list(songs[:GENERIC_SAMPLE_SIZE])

    scored = [(score_song(song, keywords, weights), song) for song in songs]
    relevant = [item for item in scored if item[0] > 0]
    if not relevant:
        return list(songs[:FALLBACK_SAMPLE_SIZE])

    # sorted() is stable, so equal scores keep library order
    relevant = sorted(relevant, key=lambda item: item[0], reverse=True)
    return [song for _, song in relevant[:max_results]]


def theme_score(lyrics: str | None, theme: str) -> int:
    """Total occurrences of each theme word in the lyrics."""
    if not lyrics:
        return 0
    return sum(count_occurrences(lyrics, word) for word in theme.lower().split())


def lyric_overlap(first: str | None, second: str | None, min_length: int = 4, cap: int = 5) -> int:
    """Number of shared lyric words longer than ``min_length - 1``, capped."""
    if not first or not second:
        return 0
    first_words = {word for word in first.lower().split() if len(word) >= min_length}
    second_words = {word for word in second.lower().split() if len(word) >= min_length}
    return min(len(first_words & second_words), cap)
