from pydantic import ValidationError

from smart_categorizer.classifiers.base import SuggestionSource
from smart_categorizer.logger import get_logger
from smart_categorizer.models import CategorySuggestion, MerchantPattern, SuggestionQuery, clamp_confidence
from smart_categorizer.storage.base import RecordStore, StoreQuery

logger = get_logger(__name__)

MERCHANT_PATTERNS_TABLE = "merchant_patterns"
PATTERN_CONFIDENCE_CEILING = 0.98
USAGE_BOOST_DIVISOR = 1000.0


class MerchantPatternStore(SuggestionSource):
    """
    Learned merchant substrings mapped to categories.

    The in-memory view is an immutable tuple ordered by descending stored
    confidence. ``load`` builds a new tuple and swaps the reference, so
    concurrent readers see either the old or the new view, never a mix.
    """

    name = "merchant_pattern"

    def __init__(self, store: RecordStore):
        self.store = store
        self._patterns: tuple[tuple[str, MerchantPattern], ...] = ()

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def patterns(self) -> tuple[tuple[str, MerchantPattern], ...]:
        return self._patterns

    async def load(self) -> bool:
        result = await self.store.find_many(
            MERCHANT_PATTERNS_TABLE,
            StoreQuery(order_by="confidence_score", descending=True),
        )
        if not result.ok:
            logger.error("[PATTERNS] Error loading merchant patterns: %s", result.error)
            return False

        parsed: list[MerchantPattern] = []
        for row in result.data:
            try:
                parsed.append(MerchantPattern.model_validate(row))
            except ValidationError as e:
                logger.warning("[PATTERNS] Skipping malformed pattern row %s: %s", row, e)

        parsed.sort(key=lambda p: p.confidence, reverse=True)

        entries: dict[str, MerchantPattern] = {}
        for pattern in parsed:
            key = pattern.pattern.lower()
            if key and key not in entries:
                entries[key] = pattern

        self._patterns = tuple(entries.items())

        if self._patterns:
            logger.info("[PATTERNS] Loaded %d merchant patterns", len(self._patterns))
        else:
            logger.info("[PATTERNS] No merchant patterns found")
        return True

    def lookup(self, description: str) -> CategorySuggestion | None:
        clean = description.lower().strip()
        if not clean:
            return None

        for key, pattern in self._patterns:
            if key in clean:
                confidence = min(
                    pattern.confidence + pattern.usage_count / USAGE_BOOST_DIVISOR,
                    PATTERN_CONFIDENCE_CEILING,
                )
                return CategorySuggestion(
                    category=pattern.category,
                    confidence=clamp_confidence(confidence, PATTERN_CONFIDENCE_CEILING),
                    source="merchant_pattern",
                    pattern=key,
                )
        return None

    async def suggest(self, query: SuggestionQuery) -> list[CategorySuggestion]:
        suggestion = self.lookup(query.description)
        return [suggestion] if suggestion else []
