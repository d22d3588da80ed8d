from collections.abc import Iterable

from smart_categorizer.models import CategorySuggestion

FALLBACK_CATEGORY = "Uncategorized"
FALLBACK_CONFIDENCE = 0.3


def fallback_suggestion() -> CategorySuggestion:
    return CategorySuggestion(
        category=FALLBACK_CATEGORY,
        confidence=FALLBACK_CONFIDENCE,
        source="fallback",
    )


def rank_suggestions(
    candidates: Iterable[CategorySuggestion],
    limit: int | None = None,
) -> list[CategorySuggestion]:
    """
    Keep the most confident candidate per category, sorted by confidence
    (highest first). On equal confidence the earlier candidate is kept.
    """
    best: dict[str, CategorySuggestion] = {}
    for candidate in candidates:
        existing = best.get(candidate.category)
        if existing is None or candidate.confidence > existing.confidence:
            best[candidate.category] = candidate

    ranked = sorted(best.values(), key=lambda s: s.confidence, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked
