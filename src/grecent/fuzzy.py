"""Fuzzy matching of search queries against branch names."""

import unicodedata
from typing import Optional

WORD_SEPARATORS = "/_-. "


def fold(text: str) -> str:
    """Casefold and strip diacritics so ``Ünïcode`` matches ``unicode``."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def fuzzy_score(query: str, candidate: str) -> Optional[int]:
    """Score how well ``query`` matches ``candidate`` as a subsequence.

    Returns None when some query character cannot be found in order.
    Consecutive runs and hits at word starts score higher, gaps lower.
    """
    query_folded = fold(query)
    if not query_folded:
        return 0
    candidate_folded = fold(candidate)

    score = 0
    prev_idx = -1
    run = 0
    for needle in query_folded:
        idx = candidate_folded.find(needle, prev_idx + 1)
        if idx < 0:
            return None
        if idx == prev_idx + 1:
            run += 1
            score += 20 + min(16, run * 4)
        else:
            gap = idx - prev_idx - 1
            run = 0
            score -= min(40, gap * 2)
        if idx == 0 or candidate_folded[idx - 1] in WORD_SEPARATORS:
            score += 35
        prev_idx = idx

    score -= len(candidate_folded) - len(query_folded)
    return score


def fuzzy_filter(query: str, names: list[str]) -> list[int]:
    """Return the indexes of matching names, best match first.

    Equal scores keep the order of ``names``.
    """
    scored = []
    for index, name in enumerate(names):
        score = fuzzy_score(query, name)
        if score is not None:
            scored.append((score, index))
    scored.sort(key=lambda item: item[0], reverse=True)
    return [index for _, index in scored]
