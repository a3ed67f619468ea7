"""
YouTube Music matching for spot-relay.

Finds the YouTube Music upload that corresponds to a liked Spotify song,
so the audio can be downloaded and published.

Matching Algorithm:
    1. Search YouTube Music using ISRC (if available)
    2. If no ISRC match, search by "Artist - Title"
    3. Filter results by duration (within tolerance)
    4. Score results by title/artist similarity using rapidfuzz
    5. Prefer official songs over user uploads, penalize alternative
       versions (live, remix, acoustic...) the Spotify title doesn't have
    6. Return best match or None if no suitable match found

Failure Semantics:
    - No suitable result          -> match() returns None
    - Search keeps failing with a transient error (rate limit, network,
      malformed response)        -> AcquisitionError
    Both end up as a skipped item in the distribution pipeline.

Dependencies:
    - ytmusicapi: YouTube Music API client
    - rapidfuzz: Fuzzy string matching

Usage:
    from spot_relay.youtube.matcher import YouTubeMatcher

    matcher = YouTubeMatcher()
    result = matcher.match(item)
    if result is not None:
        print(result.url)
"""

import random
import re
import time
from typing import Any, Callable

from rapidfuzz import fuzz
from ytmusicapi import YTMusic

from spot_relay.core.exceptions import AcquisitionError
from spot_relay.core.logger import get_logger
from spot_relay.spotify.models import LikedItem
from spot_relay.youtube.models import YouTubeResult

logger = get_logger(__name__)


# =============================================================================
# DURATION AND SIMILARITY THRESHOLDS
# =============================================================================

# If YouTube duration differs by more than this, result is rejected
DURATION_TOLERANCE_SECONDS = 10

# Below this score a result is rejected even if duration matches
MIN_SIMILARITY_SCORE = 70

# Relative importance of title vs artist match (sum to 1.0)
TITLE_WEIGHT = 0.65
ARTIST_WEIGHT = 0.35

SEARCH_OPTIONS = [
    {"filter": "songs", "ignore_spelling": True, "limit": 50},
    {"filter": "videos", "ignore_spelling": True, "limit": 50},
]


# =============================================================================
# RETRY CONFIGURATION FOR TRANSIENT ERRORS
# =============================================================================

MAX_SEARCH_RETRIES = 5

# Exponential backoff: base * 2**attempt, capped, with ±30% jitter
RETRY_DELAY_BASE = 2.0
RETRY_DELAY_MAX = 30.0
RETRY_JITTER_FACTOR = 0.3

RATE_LIMIT_DELAY_MULTIPLIER = 2.0


# =============================================================================
# SCORING ADJUSTMENTS
# =============================================================================

# Words that indicate alternative versions. If the YouTube title has one
# that the Spotify title lacks, FORBIDDEN_WORD_PENALTY is applied per word.
FORBIDDEN_WORDS = (
    "bassboosted",
    "remix",
    "remastered",
    "remaster",
    "reverb",
    "bassboost",
    "live",
    "acoustic",
    "8daudio",
    "concert",
    "acapella",
    "slowed",
    "instrumental",
    "cover",
)
FORBIDDEN_WORD_PENALTY = 15

RESULT_TYPE_BONUS = {
    "song_verified": 7,
    "song_unverified": 5,
    "video_verified": 2,
    "video_unverified": 0,
}

EXPLICIT_MATCH_SCORES = {
    "both_explicit": 3,
    "both_clean": 2,
    "spotify_explicit_yt_clean": -5,  # likely a censored version
    "spotify_clean_yt_explicit": -2,
}

ALBUM_MATCH_BONUS = 5

TRANSIENT_PATTERNS = (
    "expecting value",
    "json",
    "decode",
    "429",
    "rate",
    "too many",
    "quota",
    "throttl",
    "connection",
    "timeout",
    "timed out",
    "reset",
    "refused",
    "ssl",
    "500",
    "502",
    "503",
    "504",
    "temporarily",
    "unavailable",
    "server error",
    "network",
    "unreachable",
    "dns",
)


def _normalize_text(text: str) -> str:
    """
    Normalize text for comparison.

    Drops bracketed version info, punctuation and case:
        "Creep (Remastered 2009)" -> "creep"
    """
    text = re.sub(r'\s*[\(\[\{].*?[\)\]\}]\s*', ' ', text)
    text = re.sub(r'[^\w\s]', '', text)
    text = ' '.join(text.split())
    return text.lower().strip()


def _check_forbidden_words(spotify_title: str, youtube_title: str) -> list[str]:
    """
    Return the forbidden words found in the YouTube title but not in
    the Spotify title.

    Example:
        _check_forbidden_words("Playing God", "Playing God (Acoustic)")
        -> ["acoustic"]
    """
    spotify_lower = spotify_title.lower()
    youtube_lower = youtube_title.lower()
    return [
        word for word in FORBIDDEN_WORDS
        if word in youtube_lower and word not in spotify_lower
    ]


def _is_transient_error(error_str: str) -> bool:
    return any(pattern in error_str for pattern in TRANSIENT_PATTERNS)


class YouTubeMatcher:
    """
    Matches liked Spotify songs to YouTube Music songs/videos.

    Attributes:
        _ytmusic: ytmusicapi YTMusic client (anonymous, English).
        _sleep: Function used to wait between retries.

    Matching Strategy:
        1. ISRC Search (highest accuracy):
           If the item has an ISRC, search YouTube Music songs using it.

        2. Text Search (fallback):
           Search songs and videos using "Artist - Title".

        3. Duration Filter:
           Reject results with duration difference > DURATION_TOLERANCE.

        4. Scoring:
           Fuzzy title/artist similarity plus result type, album and
           explicit adjustments, minus forbidden word penalties.
    """

    def __init__(
        self,
        ytmusic: YTMusic | None = None,
        sleep: Callable[[float], Any] = time.sleep
    ) -> None:
        self._ytmusic = ytmusic if ytmusic is not None else YTMusic(language="en")
        self._sleep = sleep

    def match(self, item: LikedItem) -> YouTubeResult | None:
        """
        Find the best YouTube Music match for one liked song.

        Args:
            item: The liked song to match.

        Returns:
            The best scoring YouTubeResult, or None if nothing acceptable
            was found.

        Raises:
            AcquisitionError: If searching kept failing with transient errors.
        """
        logger.debug(f"Matching: {item.display_name}")

        if item.isrc:
            results = self._search_by_isrc(item.isrc)
            best = self._best_of(results, item)
            if best is not None:
                result, score = best
                logger.debug(f"ISRC match: {result.title} (score: {score:.1f})")
                return result
            logger.debug(f"No usable ISRC match for {item.isrc}, trying text search")

        results = self._search_by_text(item.search_query)
        if not results:
            logger.warning(f"No YouTube results for: {item.search_query}")
            return None

        best = self._best_of(results, item)
        if best is None:
            logger.warning(
                f"No YouTube result within {DURATION_TOLERANCE_SECONDS}s and "
                f"above score {MIN_SIMILARITY_SCORE} for: {item.search_query}"
            )
            return None

        result, score = best
        logger.debug(
            f"Text search match: {result.title} by {result.author} "
            f"(score: {score:.1f})"
        )
        return result

    def _best_of(
        self,
        results: list[YouTubeResult],
        item: LikedItem
    ) -> tuple[YouTubeResult, float] | None:
        filtered = self._filter_by_duration(results, item.duration_ms)
        scored = [(r, self._score_result(r, item)) for r in filtered]
        valid = [(r, s) for r, s in scored if s >= MIN_SIMILARITY_SCORE]
        if not valid:
            return None
        return max(valid, key=lambda pair: pair[1])

    def _search_with_retry(
        self,
        search_func: Callable[..., Any],
        *args,
        **kwargs
    ) -> list[dict[str, Any]]:
        """
        Execute a search with exponential backoff for transient errors.

        Returns:
            Raw search results ([] if a non-transient error persisted).

        Raises:
            AcquisitionError: If all retries fail with a transient error.
        """
        last_exception: Exception | None = None

        for attempt in range(MAX_SEARCH_RETRIES):
            try:
                return search_func(*args, **kwargs) or []
            except Exception as e:
                last_exception = e
                if attempt == MAX_SEARCH_RETRIES - 1:
                    break

                error_str = str(e).lower()
                delay = min(RETRY_DELAY_BASE * (2 ** attempt), RETRY_DELAY_MAX)
                is_rate_limit = any(p in error_str for p in ("429", "rate", "too many", "quota"))
                if is_rate_limit:
                    delay = min(delay * RATE_LIMIT_DELAY_MULTIPLIER, RETRY_DELAY_MAX)
                delay += delay * RETRY_JITTER_FACTOR * (2 * random.random() - 1)
                delay = max(0.5, delay)

                log_msg = (
                    f"Search attempt {attempt + 1}/{MAX_SEARCH_RETRIES} failed: {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                if is_rate_limit:
                    logger.warning(log_msg + " (rate limit detected)")
                else:
                    logger.debug(log_msg)
                self._sleep(delay)

        if last_exception is not None and _is_transient_error(str(last_exception).lower()):
            raise AcquisitionError(
                f"YouTube Music search failed after {MAX_SEARCH_RETRIES} attempts: {last_exception}",
                details={"query": args[0] if args else None}
            ) from last_exception

        logger.error(f"Search failed after {MAX_SEARCH_RETRIES} attempts: {last_exception}")
        return []

    def _parse_results(self, raw_results: list[dict[str, Any]]) -> list[YouTubeResult]:
        results = []
        for raw in raw_results:
            # Podcasts, episodes and some uploads come without id or artists
            if not raw.get("videoId") or not raw.get("artists"):
                continue
            result = YouTubeResult.from_ytmusic_result(raw)
            if result.video_id and result.duration_seconds > 0:
                results.append(result)
        return results

    def _search_by_isrc(self, isrc: str) -> list[YouTubeResult]:
        raw_results = self._search_with_retry(
            self._ytmusic.search,
            isrc,
            filter="songs",
            ignore_spelling=True,
            limit=20
        )
        return self._parse_results(raw_results)

    def _search_by_text(self, query: str) -> list[YouTubeResult]:
        """Search songs then videos, dropping repeated video ids."""
        all_results: list[YouTubeResult] = []
        seen_ids: set[str] = set()

        for options in SEARCH_OPTIONS:
            raw_results = self._search_with_retry(self._ytmusic.search, query, **options)
            for result in self._parse_results(raw_results):
                if result.video_id in seen_ids:
                    continue
                seen_ids.add(result.video_id)
                all_results.append(result)

        return all_results

    def _filter_by_duration(
        self,
        results: list[YouTubeResult],
        target_duration_ms: int
    ) -> list[YouTubeResult]:
        # Unknown Spotify duration: nothing to compare against
        if target_duration_ms <= 0:
            return list(results)
        target_seconds = target_duration_ms // 1000
        return [
            r for r in results
            if abs(r.duration_seconds - target_seconds) <= DURATION_TOLERANCE_SECONDS
        ]

    def _score_result(self, result: YouTubeResult, item: LikedItem) -> float:
        """
        Calculate match score for a YouTube result.

        Scoring Components:
            1. Base Score (0-100): weighted title and artist similarity
            2. Result Type Bonus: +7 verified songs, +5 unverified songs
            3. Album Match Bonus: +5 if album names are similar
            4. Explicit Match: +3 both explicit, +2 both clean, -5/-2 mismatches
            5. Forbidden Word Penalty: -15 per forbidden word found
        """
        spotify_title = _normalize_text(item.title)
        youtube_title = _normalize_text(result.title)
        spotify_artist = _normalize_text(item.primary_artist)
        youtube_artist = _normalize_text(result.author)

        spotify_all_artists = _normalize_text(" ".join(item.artists or (item.primary_artist,)))
        youtube_all_artists = (
            _normalize_text(" ".join(result.artists)) if result.artists else youtube_artist
        )

        title_score = fuzz.ratio(spotify_title, youtube_title)
        artist_score = max(
            fuzz.ratio(spotify_artist, youtube_artist),
            fuzz.ratio(spotify_all_artists, youtube_all_artists),
        )
        score = (title_score * TITLE_WEIGHT) + (artist_score * ARTIST_WEIGHT)

        kind = "song" if result.result_type == "song" else "video"
        status = "verified" if result.is_verified else "unverified"
        score += RESULT_TYPE_BONUS[f"{kind}_{status}"]

        if item.album_name and result.album:
            album_similarity = fuzz.ratio(
                _normalize_text(item.album_name), _normalize_text(result.album)
            )
            if album_similarity >= 80:
                score += ALBUM_MATCH_BONUS

        if result.is_explicit is not None:
            if item.explicit and result.is_explicit:
                score += EXPLICIT_MATCH_SCORES["both_explicit"]
            elif not item.explicit and not result.is_explicit:
                score += EXPLICIT_MATCH_SCORES["both_clean"]
            elif item.explicit:
                score += EXPLICIT_MATCH_SCORES["spotify_explicit_yt_clean"]
            else:
                score += EXPLICIT_MATCH_SCORES["spotify_clean_yt_explicit"]

        score -= FORBIDDEN_WORD_PENALTY * len(_check_forbidden_words(item.title, result.title))
        return score
