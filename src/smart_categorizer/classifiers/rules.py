from pydantic import ValidationError

from smart_categorizer.classifiers.base import SuggestionSource
from smart_categorizer.logger import get_logger
from smart_categorizer.models import CategorySuggestion, DefaultRule, SuggestionQuery
from smart_categorizer.storage.base import RecordStore, StoreQuery

logger = get_logger(__name__)

DEFAULT_RULES_TABLE = "default_category_rules"


class DefaultRuleStore(SuggestionSource):
    """Admin-curated keyword/merchant rules. Read-only from here."""

    name = "rule"

    def __init__(self, store: RecordStore):
        self.store = store
        self._rules: tuple[tuple[str, DefaultRule], ...] = ()

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[tuple[str, DefaultRule], ...]:
        return self._rules

    async def load(self) -> bool:
        result = await self.store.find_many(
            DEFAULT_RULES_TABLE,
            StoreQuery(
                filters={"is_active": True},
                order_by="confidence_score",
                descending=True,
            ),
        )
        if not result.ok:
            logger.error("[RULES] Error loading default rules: %s", result.error)
            return False

        entries: dict[str, DefaultRule] = {}
        for row in result.data:
            try:
                rule = DefaultRule.model_validate(row)
            except ValidationError as e:
                logger.warning("[RULES] Skipping malformed rule row %s: %s", row, e)
                continue
            if rule.rule_value.strip() and rule.key not in entries:
                entries[rule.key] = rule

        self._rules = tuple(entries.items())

        if self._rules:
            logger.info("[RULES] Loaded %d default rules", len(self._rules))
        else:
            logger.info("[RULES] No default rules found")
        return True

    def match(self, description: str, transaction_type: int) -> list[CategorySuggestion]:
        clean = description.lower().strip()
        suggestions: list[CategorySuggestion] = []
        if not clean:
            return suggestions

        for key, rule in self._rules:
            if rule.transaction_type != transaction_type:
                continue
            # keyword and merchant rules both match on containment
            if rule.rule_value.lower() in clean:
                suggestions.append(CategorySuggestion(
                    category=rule.category,
                    confidence=rule.confidence,
                    source="rule",
                    rule=key,
                ))
        return suggestions

    async def suggest(self, query: SuggestionQuery) -> list[CategorySuggestion]:
        return self.match(query.description, query.transaction_type)
