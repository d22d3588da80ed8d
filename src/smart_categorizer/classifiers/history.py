from smart_categorizer.classifiers.base import SuggestionSource
from smart_categorizer.features.extractor import tokenize
from smart_categorizer.logger import get_logger
from smart_categorizer.models import CategorySuggestion, SuggestionQuery, clamp_confidence
from smart_categorizer.storage.base import RecordStore, StoreQuery

logger = get_logger(__name__)

TRANSACTIONS_TABLE = "transactions"
SIMILARITY_THRESHOLD = 0.6
HISTORY_CONFIDENCE_FACTOR = 0.8
HISTORY_CONFIDENCE_CEILING = 0.85


def jaccard_similarity(first: str, second: str) -> float:
    tokens_first = set(tokenize(first.lower()))
    tokens_second = set(tokenize(second.lower()))
    union = tokens_first | tokens_second
    if not union:
        return 0.0
    return len(tokens_first & tokens_second) / len(union)


class UserHistoryMatcher(SuggestionSource):
    """
    Finds the user's most similar past transaction.

    A linear scan over at most ``limit`` rows (one bounded fetch per call);
    it is not meant to scale beyond a few hundred rows.
    """

    name = "user_history"

    def __init__(self, store: RecordStore, limit: int = 100):
        self.store = store
        self.limit = limit

    async def match(self, description: str, user_id: str) -> CategorySuggestion | None:
        result = await self.store.find_many(
            TRANSACTIONS_TABLE,
            StoreQuery(
                filters={"userId": user_id},
                not_null=("category",),
                limit=self.limit,
            ),
        )
        if not result.ok:
            logger.error("[SUGGEST] User history lookup failed: %s", result.error)
            return None
        if not result.data:
            return None

        best_category: str | None = None
        best_similarity = 0.0
        for row in result.data:
            past_description = row.get("description")
            category = row.get("category")
            if not isinstance(past_description, str) or not category:
                continue
            similarity = jaccard_similarity(description, past_description)
            if similarity > best_similarity and similarity > SIMILARITY_THRESHOLD:
                best_similarity = similarity
                best_category = str(category)

        if best_category is None:
            return None

        confidence = min(best_similarity * HISTORY_CONFIDENCE_FACTOR, HISTORY_CONFIDENCE_CEILING)
        return CategorySuggestion(
            category=best_category,
            confidence=clamp_confidence(confidence, HISTORY_CONFIDENCE_CEILING),
            source="user_history",
        )

    async def suggest(self, query: SuggestionQuery) -> list[CategorySuggestion]:
        if not query.user_id:
            return []
        suggestion = await self.match(query.description, query.user_id)
        return [suggestion] if suggestion else []
