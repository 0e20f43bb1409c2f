"""Snippet extraction with lemma-aware highlighting.

The search service hands over the page text (title and body as one blob) and
the set of lemmas the page matched. Word forms are mapped back to lemmas with
the same analyzer the indexer used, so "собаки" is highlighted for the lemma
of "собака".

Smart Defaults:
- Picks the window holding the most distinct matched lemmas
- Tries to start/end on sentence boundaries
- Falls back to word boundaries if no sentence found
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
import html
import re

from lemma_search.search.analyzers import MorphologyAnalyzer


# Sentence-ending punctuation pattern
SENTENCE_END_PATTERN = re.compile(r"[.!?…]\s+")
# Word boundary pattern (for fallback)
WORD_BOUNDARY_PATTERN = re.compile(r"\s+")

ELLIPSIS = "..."


@dataclass(frozen=True, slots=True)
class Match:
    start: int
    end: int
    lemma: str


def truncate_title(title: str, max_length: int = 50, marker: str = ELLIPSIS) -> str:
    """Cut ``title`` to ``max_length`` characters and append ``marker`` when cut."""
    if len(title) <= max_length:
        return title
    return title[:max_length] + marker


def find_sentence_start(text: str, position: int, max_lookback: int = 200) -> int:
    """Find the start of the sentence containing the position.

    Returns the index after the closest sentence end within ``max_lookback``
    characters, else a word boundary, else ``position - max_lookback``.
    """
    if position <= 0:
        return 0

    start_search = max(0, position - max_lookback)
    search_text = text[start_search:position]

    matches = list(SENTENCE_END_PATTERN.finditer(search_text))
    if matches:
        return start_search + matches[-1].end()

    quarter_pos = len(search_text) // 4
    for match in WORD_BOUNDARY_PATTERN.finditer(search_text):
        if match.start() >= quarter_pos:
            return start_search + match.end()

    return start_search


def find_sentence_end(text: str, position: int, max_lookahead: int = 200) -> int:
    """Find the end of the sentence containing the position."""
    if position >= len(text):
        return len(text)

    end_search = min(len(text), position + max_lookahead)
    search_text = text[position:end_search]

    match = SENTENCE_END_PATTERN.search(search_text)
    if match:
        # Keep the punctuation, drop the trailing whitespace
        return position + match.start() + 1

    three_quarter_pos = (len(search_text) * 3) // 4
    for match in reversed(list(WORD_BOUNDARY_PATTERN.finditer(search_text))):
        if match.start() <= three_quarter_pos:
            return position + match.start()

    return end_search


def find_lemma_matches(text: str, lemmas: Collection[str], analyzer: MorphologyAnalyzer) -> list[Match]:
    """Locate every word form of ``text`` whose lemma is in ``lemmas``."""
    if not text or not lemmas:
        return []
    wanted = set(lemmas)
    return [
        Match(token.start_char, token.end_char, token.text)
        for token in analyzer.analyze(text)
        if token.text in wanted
    ]


def densest_window(matches: list[Match], max_chars: int) -> tuple[int, int]:
    """Return ``(first, last)`` indexes of the best run of matches.

    A run must fit in ``max_chars``. Runs covering more distinct lemmas win,
    then runs with more matches, then the earliest run.
    """
    best = (0, 0)
    best_key = (0, 0)
    left = 0
    for right, match in enumerate(matches):
        while left < right and match.end - matches[left].start > max_chars:
            left += 1
        run = matches[left : right + 1]
        key = (len({m.lemma for m in run}), len(run))
        if key > best_key:
            best_key = key
            best = (left, right)
    return best


def highlight(text: str, spans: list[tuple[int, int]], style: str = "html") -> str:
    """Wrap each ``(start, end)`` span; spans must be sorted and disjoint.

    ``html`` escapes the text and uses ``<b>``; ``plain`` uses ``[[...]]``.
    """
    if style == "html":
        escape = html.escape
        opening, closing = "<b>", "</b>"
    else:
        def escape(part: str) -> str:
            return part

        opening, closing = "[[", "]]"

    parts: list[str] = []
    cursor = 0
    for start, end in spans:
        parts.append(escape(text[cursor:start]))
        parts.append(f"{opening}{escape(text[start:end])}{closing}")
        cursor = end
    parts.append(escape(text[cursor:]))
    return "".join(parts)


def build_snippet(
    text: str,
    lemmas: Collection[str],
    analyzer: MorphologyAnalyzer,
    *,
    max_chars: int = 240,
    surrounding_context: int = 80,
    style: str = "html",
) -> str:
    """Build a bounded, highlighted excerpt around the matched lemmas.

    This is the main entry point for snippet generation. Without any matching
    word form the head of the text is returned unhighlighted.
    """
    if not text:
        return ""

    matches = find_lemma_matches(text, lemmas, analyzer)
    if not matches:
        if len(text) <= max_chars:
            return highlight(text.strip(), [], style)
        cut = text.rfind(" ", 0, max_chars)
        if cut <= 0:
            cut = max_chars
        return highlight(text[:cut].rstrip(), [], style) + ELLIPSIS

    first, last = densest_window(matches, max_chars)
    cluster_start = matches[first].start
    cluster_end = matches[last].end
    span = cluster_end - cluster_start
    slack = max(0, max_chars - span)
    context = min(surrounding_context, slack // 2)

    start = find_sentence_start(text, max(0, cluster_start - context), max_lookback=context)
    end = find_sentence_end(text, min(len(text), cluster_end + context), max_lookahead=context)
    if end - start > max_chars:
        start = max(0, cluster_start - slack // 2)
        end = min(len(text), start + max(max_chars, span))

    # Trim outer whitespace without shifting the highlight offsets
    while start < cluster_start and text[start].isspace():
        start += 1
    while end > cluster_end and text[end - 1].isspace():
        end -= 1

    spans = [
        (match.start - start, match.end - start)
        for match in matches
        if match.start >= start and match.end <= end
    ]
    body = highlight(text[start:end], spans, style)
    prefix = ELLIPSIS if start > 0 else ""
    suffix = ELLIPSIS if end < len(text) else ""
    return f"{prefix}{body}{suffix}"
