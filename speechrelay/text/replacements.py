"""Whole-word replacement dictionary for recognized and synthesized text.

A :class:`ReplacementCache` is compiled once from a dictionary and never
mutated afterwards. :class:`WordReplacer` swaps in a freshly built cache
whenever the dictionary changes, so a concurrent ``apply`` always works on
one consistent snapshot.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

logger = logging.getLogger(__name__)

# Boundaries are lookarounds rather than \b so that keys which start or end
# with punctuation ("c++", "e.g.") still match as whole words.
_WORD_START = r"(?<!\w)"
_WORD_END = r"(?!\w)"


@dataclass(frozen=True)
class ReplacementCache:
    """Compiled replacement dictionary."""

    dictionary: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    pattern: re.Pattern[str] | None = None
    case_insensitive: bool = False
    # Original spelling of each key -> its dictionary key.
    spellings: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_empty(self) -> bool:
        return not self.dictionary


EMPTY_CACHE = ReplacementCache()


def build_replacement_cache(
    dictionary: Mapping[str, str] | None, case_insensitive: bool
) -> ReplacementCache:
    """Compile *dictionary* into a whole-word replacement cache.

    Keys are trimmed; keys that are empty after trimming are ignored. When
    *case_insensitive* is set, keys are lower-cased (the last duplicate wins)
    and the pattern matches regardless of case.
    """
    entries: dict[str, str] = {}
    spellings: dict[str, str] = {}
    for key, value in (dictionary or {}).items():
        spelling = str(key).strip()
        if not spelling:
            continue
        key = spelling.lower() if case_insensitive else spelling
        spellings[spelling] = key
        entries[key] = "" if value is None else str(value)

    if not entries:
        return ReplacementCache(case_insensitive=case_insensitive)

    # Longest first, so "new york" wins over "new". The original spellings go
    # into the pattern: str.lower() and re.IGNORECASE fold some characters
    # differently for a few characters such as U+0130.
    alternation = "|".join(
        re.escape(spelling) for spelling in sorted(spellings, key=len, reverse=True)
    )
    flags = re.IGNORECASE if case_insensitive else 0
    pattern = re.compile(f"{_WORD_START}(?:{alternation}){_WORD_END}", flags)
    logger.debug("Built replacement cache with %d entries", len(entries))
    return ReplacementCache(
        dictionary=MappingProxyType(entries),
        pattern=pattern,
        case_insensitive=case_insensitive,
        spellings=MappingProxyType(spellings),
    )


def _lookup_folded(cache: ReplacementCache, token: str) -> str | None:
    """Find the entry a case-insensitive match came from when lower() disagrees."""
    for spelling, key in cache.spellings.items():
        if re.fullmatch(re.escape(spelling), token, re.IGNORECASE):
            return cache.dictionary.get(key)
    return None


def _match_case(token: str, replacement: str) -> str:
    if not replacement:
        return replacement
    if token[:1].isupper():
        return replacement[0].upper() + replacement[1:].lower()
    return replacement.lower()


def apply_replacements(
    cache: ReplacementCache, text: str, preserve_case: bool = False
) -> str:
    """Replace every whole-word dictionary key found in *text*.

    *preserve_case* only has an effect on case-insensitive caches: a match
    starting with an upper-case letter gets a capitalized replacement, any
    other match gets a fully lower-cased one.
    """
    if cache.is_empty or cache.pattern is None or not text:
        return text

    def _substitute(match: re.Match[str]) -> str:
        token = match.group(0)
        key = token.lower() if cache.case_insensitive else token
        replacement = cache.dictionary.get(key)
        if replacement is None and cache.case_insensitive:
            replacement = _lookup_folded(cache, token)
        if replacement is None:
            return token
        if cache.case_insensitive and preserve_case:
            return _match_case(token, replacement)
        return replacement

    return cache.pattern.sub(_substitute, text)


class WordReplacer:
    """Holds the current replacement cache for one service."""

    def __init__(
        self,
        dictionary: Mapping[str, str] | None = None,
        case_insensitive: bool = False,
    ) -> None:
        self._cache: ReplacementCache = build_replacement_cache(
            dictionary, case_insensitive
        )

    @property
    def cache(self) -> ReplacementCache:
        return self._cache

    def rebuild(
        self, dictionary: Mapping[str, str] | None, case_insensitive: bool
    ) -> ReplacementCache:
        """Build a new cache and swap it in as a single assignment."""
        cache = build_replacement_cache(dictionary, case_insensitive)
        self._cache = cache
        return cache

    def apply(self, text: str, preserve_case: bool = False) -> str:
        cache = self._cache
        return apply_replacements(cache, text, preserve_case)
