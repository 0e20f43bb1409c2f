"""Morphology analyzers that reduce raw text to lemma counts.

The indexer and the search service only depend on the ``MorphologyAnalyzer``
protocol: ``lemmatize(text)`` for the lemma -> count mapping and
``analyze(text)`` for tokens that remember where their word form sits in the
text (the snippet builder maps lemmas back to those offsets).

The default implementation is a tokenizer followed by a chain of token
filters. Lemmas are NLTK Snowball stems: the Russian stemmer for Cyrillic
words and the English one for everything else.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, replace
from functools import lru_cache
import re
from typing import Protocol

from nltk.stem.snowball import SnowballStemmer


@dataclass(frozen=True, slots=True)
class Token:
    """A lemma candidate plus the span of the word form it came from.

    Filters rewrite ``text``; ``form``, ``start_char`` and ``end_char`` keep
    pointing at the original word.
    """

    text: str
    start_char: int
    end_char: int
    form: str = ""


TokenFilter = Callable[[Iterable[Token]], Iterator[Token]]


class MorphologyAnalyzer(Protocol):
    """Protocol implemented by lemmatizers. Must be deterministic."""

    def lemmatize(self, text: str) -> dict[str, int]:  # pragma: no cover - interface definition
        ...

    def analyze(self, text: str) -> list[Token]:  # pragma: no cover - interface definition
        ...


class RegexTokenizer:
    """Yields letter-only words; digits and underscores split words ("page2" -> "page")."""

    def __init__(self, pattern: str = r"[^\W\d_]+") -> None:
        self.pattern = re.compile(pattern)

    def __call__(self, text: str) -> Iterator[Token]:
        for match in self.pattern.finditer(text):
            yield Token(match.group(0), match.start(), match.end(), form=match.group(0))


def lowercase_filter(tokens: Iterable[Token]) -> Iterator[Token]:
    """Lowercase and fold ``ё`` into ``е`` so both spellings share a lemma."""
    for token in tokens:
        folded = token.text.lower().replace("ё", "е")
        yield token if folded == token.text else replace(token, text=folded)


# Prepositions, conjunctions, particles and pronouns of both supported languages
RUSSIAN_STOPWORDS = frozenset(
    "а без бы в во вот да для до же за и из или к ко ли на над не ни но о об от по под при про "
    "с со то у что чтобы я ты он она оно мы вы они".split()
)
ENGLISH_STOPWORDS = frozenset(
    "a an and are as at be but by for if in into is it no not of on or such that the their then "
    "there these they this to was will with".split()
)
DEFAULT_STOPWORDS = RUSSIAN_STOPWORDS | ENGLISH_STOPWORDS

_CYRILLIC = re.compile(r"[а-яё]")


class StopFilter:
    """Drops function words."""

    def __init__(self, stopwords: Iterable[str] | None = None) -> None:
        self.stopwords = frozenset(word.lower() for word in (DEFAULT_STOPWORDS if stopwords is None else stopwords))

    def __call__(self, tokens: Iterable[Token]) -> Iterator[Token]:
        return (token for token in tokens if token.text.lower() not in self.stopwords)


@lru_cache(maxsize=65536)
def snowball_stem(word: str) -> str:
    """Snowball stem of a lowercased ``word``; the stemmer follows the script."""
    stemmer = _stemmer("russian" if _CYRILLIC.search(word) else "english")
    return stemmer.stem(word) or word


@lru_cache(maxsize=None)
def _stemmer(language: str) -> SnowballStemmer:
    return SnowballStemmer(language)


def snowball_filter(tokens: Iterable[Token]) -> Iterator[Token]:
    for token in tokens:
        yield replace(token, text=snowball_stem(token.text))


class SnowballLemmatizer:
    """Default morphology analyzer used by the indexer and the search service."""

    def __init__(
        self,
        *,
        stopwords: Iterable[str] | None = None,
        apply_stemming: bool = True,
    ) -> None:
        self.tokenizer = RegexTokenizer()
        self.filters: list[TokenFilter] = [lowercase_filter, StopFilter(stopwords)]
        if apply_stemming:
            self.filters.append(snowball_filter)

    def analyze(self, text: str) -> list[Token]:
        if not text:
            return []
        stream: Iterable[Token] = self.tokenizer(text)
        for token_filter in self.filters:
            stream = token_filter(stream)
        return list(stream)

    def lemmatize(self, text: str) -> dict[str, int]:
        """Count every lemma of ``text``; insertion order follows first occurrence."""
        return dict(Counter(token.text for token in self.analyze(text)))

    def __call__(self, text: str) -> list[Token]:
        return self.analyze(text)


_ANALYZER_FACTORIES: dict[str, Callable[[], MorphologyAnalyzer]] = {
    "default": SnowballLemmatizer,
    "snowball": SnowballLemmatizer,
    "nostem": lambda: SnowballLemmatizer(apply_stemming=False),
}


def get_analyzer(name: str | None) -> MorphologyAnalyzer:
    """Return analyzer by name, defaulting to the Snowball lemmatizer."""
    key = (name or "default").lower()
    if key not in _ANALYZER_FACTORIES:
        raise ValueError(f"Unknown analyzer '{name}'. Available: {sorted(_ANALYZER_FACTORIES)}")
    return _ANALYZER_FACTORIES[key]()
