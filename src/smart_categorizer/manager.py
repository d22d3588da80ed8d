import asyncio

from smart_categorizer.classifiers.base import SuggestionSource
from smart_categorizer.classifiers.history import UserHistoryMatcher
from smart_categorizer.classifiers.naive_bayes import NaiveBayesClassifier
from smart_categorizer.classifiers.patterns import MerchantPatternStore
from smart_categorizer.classifiers.rules import DefaultRuleStore
from smart_categorizer.core import settings
from smart_categorizer.features.entities import EntityRecognizer
from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.logger import get_logger
from smart_categorizer.models import CategorySuggestion, SuggestionQuery
from smart_categorizer.services.feedback import FeedbackRecorder
from smart_categorizer.services.ranking import fallback_suggestion, rank_suggestions
from smart_categorizer.services.training import TrainingManager
from smart_categorizer.storage.base import RecordStore

logger = get_logger(__name__)


class SmartCategorizationService:
    """
    Suggests a spending category for a transaction description by combining
    merchant patterns, default rules, the Naive Bayes model and the user's
    own history, and learns from the user's decisions.
    """

    def __init__(
        self,
        store: RecordStore,
        extractor: FeatureExtractor | None = None,
        *,
        suggestion_limit: int = settings.SUGGESTION_LIMIT,
        history_limit: int = settings.HISTORY_LIMIT,
        retrain_min_samples: int = settings.RETRAIN_MIN_SAMPLES,
        bootstrap_min_samples: int = settings.BOOTSTRAP_MIN_SAMPLES,
        bootstrap_limit: int = settings.BOOTSTRAP_LIMIT,
    ):
        self.store = store
        self.extractor = extractor or FeatureExtractor(EntityRecognizer(settings.SPACY_MODEL))
        self.suggestion_limit = suggestion_limit

        self.patterns = MerchantPatternStore(store)
        self.rules = DefaultRuleStore(store)
        self.classifier = NaiveBayesClassifier(self.extractor)
        self.history = UserHistoryMatcher(store, limit=history_limit)

        # Evaluation order; ranking decides the final order.
        self.sources: list[SuggestionSource] = [
            self.patterns,
            self.rules,
            self.classifier,
            self.history,
        ]

        self.feedback = FeedbackRecorder(store, self.patterns, self.extractor)
        self.training = TrainingManager(
            store,
            self.classifier,
            self.extractor,
            retrain_min_samples=retrain_min_samples,
            bootstrap_min_samples=bootstrap_min_samples,
            bootstrap_limit=bootstrap_limit,
        )

        self.is_initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        if self.is_initialized:
            return
        async with self._init_lock:
            if self.is_initialized:
                return
            logger.info("[SUGGEST] Initializing categorization engine...")
            await self.patterns.load()
            await self.rules.load()
            if not self.classifier.is_fitted:
                await self.training.bootstrap()
            self.is_initialized = True
            logger.info(
                "[SUGGEST] Engine initialized: %d patterns, %d rules, model %s",
                len(self.patterns),
                len(self.rules),
                "ready" if self.classifier.is_fitted else "absent",
            )

    async def _collect(self, source: SuggestionSource, query: SuggestionQuery) -> list[CategorySuggestion]:
        try:
            return await source.suggest(query)
        except Exception as e:
            logger.error("[SUGGEST] Source '%s' failed: %s", source.name, e)
            return []

    async def suggest_category(
        self,
        description: str,
        amount: float = 0.0,
        transaction_type: int = 1,
        user_id: str | None = None,
    ) -> list[CategorySuggestion]:
        """Return up to ``suggestion_limit`` suggestions; never empty."""
        try:
            await self.initialize()

            query = SuggestionQuery(
                description=description,
                amount=amount or 0.0,
                transaction_type=transaction_type,
                user_id=user_id,
            )
            logger.debug("[SUGGEST] Suggesting category for: '%s...'", query.description[:50])

            candidates: list[CategorySuggestion] = []
            for source in self.sources:
                found = await self._collect(source, query)
                if found:
                    logger.debug(
                        "[SUGGEST] %s returned: %s",
                        source.name,
                        ", ".join(f"'{s.category}' ({s.confidence:.2f})" for s in found),
                    )
                candidates.extend(found)

            ranked = rank_suggestions(candidates, limit=self.suggestion_limit)
            if ranked:
                return ranked
            logger.debug("[SUGGEST] No source matched for: '%s...'", query.description[:50])
        except Exception as e:
            logger.error("[SUGGEST] Error in categorization: %s", e, exc_info=True)

        return [fallback_suggestion()]

    async def record_feedback(
        self,
        user_id: str,
        description: str,
        suggested_category: str,
        actual_category: str,
        was_accepted: bool,
        confidence: float,
        amount: float | None = None,
    ) -> None:
        await self.feedback.record_feedback(
            user_id,
            description,
            suggested_category,
            actual_category,
            was_accepted,
            confidence,
            amount,
        )

    async def retrain_model(self) -> None:
        await self.training.retrain_model()

    async def reload(self) -> None:
        """Reload merchant patterns and default rules from storage."""
        await self.patterns.load()
        await self.rules.load()
