"""Conjunctive (AND) matching of query lemmas against the per-site index."""

from __future__ import annotations

from collections.abc import Collection, Iterable
import logging

from lemma_search.adapters.repository import AbstractRepository
from lemma_search.domain.model import Lemma, MatchedEntry, Site


logger = logging.getLogger(__name__)


def resolve_lemmas(repository: AbstractRepository, query_lemmas: Collection[str], site: Site) -> list[Lemma]:
    """Return the lemma records of ``site`` matching ``query_lemmas``.

    A result shorter than ``query_lemmas`` means some query term never occurs
    on the site.
    """
    if not query_lemmas or site.id is None:
        return []
    return repository.find_lemmas(site.id, query_lemmas)


def intersect_pages(
    repository: AbstractRepository,
    lemmas: list[Lemma],
    *,
    rarest_first: bool = True,
) -> list[MatchedEntry]:
    """Return the index rows of the pages that contain every lemma.

    One row per matched lemma per surviving page; rows are not merged here.
    ``rarest_first`` processes lemmas by ascending frequency, which narrows
    the candidate set fastest but never changes the outcome.
    """
    if not lemmas:
        return []
    if len(lemmas) == 1:
        return repository.entries_for_lemma(lemmas[0].id)

    ordered = sorted(lemmas, key=lambda lemma: lemma.frequency) if rarest_first else list(lemmas)
    candidates = dict.fromkeys(repository.page_ids_for_lemma(ordered[0].id))
    for lemma in ordered[1:]:
        if not candidates:
            return []
        pages_of_lemma = set(repository.page_ids_for_lemma(lemma.id))
        candidates = {page_id: None for page_id in candidates if page_id in pages_of_lemma}
    if not candidates:
        return []

    return repository.entries_for_lemmas_and_pages([lemma.id for lemma in ordered], list(candidates))


def intersect_site(
    repository: AbstractRepository,
    query_lemmas: Collection[str],
    site: Site,
    *,
    rarest_first: bool = True,
) -> list[MatchedEntry]:
    """Resolve ``query_lemmas`` on ``site`` and intersect their pages."""
    lemmas = resolve_lemmas(repository, query_lemmas, site)
    if len(lemmas) < len(set(query_lemmas)):
        logger.debug(
            "Site %s lacks %d of %d query lemmas",
            site.url,
            len(set(query_lemmas)) - len(lemmas),
            len(set(query_lemmas)),
        )
        return []
    return intersect_pages(repository, lemmas, rarest_first=rarest_first)


def intersect_all_sites(
    repository: AbstractRepository,
    query_lemmas: Collection[str],
    sites: Iterable[Site],
    *,
    rarest_first: bool = True,
) -> list[MatchedEntry]:
    """Union of per-site matches, site by site in the given order."""
    matched: list[MatchedEntry] = []
    for site in sites:
        matched.extend(intersect_site(repository, query_lemmas, site, rarest_first=rarest_first))
    return matched
