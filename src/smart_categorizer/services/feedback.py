import asyncio
import json
from datetime import datetime, timezone

from smart_categorizer.classifiers.patterns import MERCHANT_PATTERNS_TABLE, MerchantPatternStore
from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.features.merchant import extract_merchant
from smart_categorizer.logger import get_logger
from smart_categorizer.models import FeedbackEvent, TrainingSample
from smart_categorizer.storage.base import RecordStore, StoreQuery

logger = get_logger(__name__)

FEEDBACK_TABLE = "categorization_feedback"
TRAINING_DATA_TABLE = "ml_training_data"
NEW_PATTERN_CONFIDENCE = 0.7


class FeedbackRecorder:
    def __init__(
        self,
        store: RecordStore,
        patterns: MerchantPatternStore,
        extractor: FeatureExtractor,
    ):
        self.store = store
        self.patterns = patterns
        self.extractor = extractor

    async def record_feedback(
        self,
        user_id: str,
        description: str,
        suggested_category: str,
        actual_category: str,
        was_accepted: bool,
        confidence: float,
        amount: float | None = None,
        transaction_type: int = 1,
    ) -> None:
        """
        Persist a user's accept/correct decision and learn from it.

        Corrections update the merchant pattern store; every decision becomes
        a verified training sample. Errors are logged, never raised.
        """
        try:
            merchant: str | None = None
            try:
                merchant = extract_merchant(description.lower())
            except Exception as e:
                logger.warning("[FEEDBACK] Merchant extraction failed: %s", e)

            event = FeedbackEvent(
                user_id=user_id,
                description=description,
                suggested_category=suggested_category,
                actual_category=actual_category,
                was_accepted=was_accepted,
                confidence=confidence,
                amount=amount,
                merchant_pattern=merchant,
            )
            result = await self.store.insert(FEEDBACK_TABLE, event.to_row())
            if not result.ok:
                logger.error("[FEEDBACK] Error recording feedback: %s", result.error)
                return

            if merchant and not was_accepted:
                await self.update_merchant_pattern(merchant, actual_category)

            await self.add_training_sample(
                user_id,
                description,
                actual_category,
                amount,
                transaction_type=transaction_type,
            )

            logger.info(
                "[FEEDBACK] Recorded feedback: %s ('%s' -> '%s')",
                "accepted" if was_accepted else "corrected",
                suggested_category,
                actual_category,
            )
        except Exception as e:
            logger.error("[FEEDBACK] Error in record_feedback: %s", e, exc_info=True)

    async def update_merchant_pattern(self, pattern: str, category: str) -> None:
        key = pattern.strip().upper()
        if not key:
            return

        existing = await self.store.find_many(
            MERCHANT_PATTERNS_TABLE,
            StoreQuery(filters={"pattern": key}, limit=1),
        )
        if not existing.ok:
            logger.error("[FEEDBACK] Error checking merchant pattern '%s': %s", key, existing.error)
            return

        now = datetime.now(timezone.utc).isoformat()
        if existing.data:
            current = existing.data[0]
            fields = {
                "pattern": key,
                "suggested_category": category,
                "usage_count": int(current.get("usage_count") or 0) + 1,
                "updated_at": now,
            }
        else:
            fields = {
                "pattern": key,
                "suggested_category": category,
                "confidence_score": NEW_PATTERN_CONFIDENCE,
                "usage_count": 1,
                "updated_at": now,
            }

        result = await self.store.upsert(MERCHANT_PATTERNS_TABLE, "pattern", fields)
        if not result.ok:
            logger.error("[FEEDBACK] Error saving merchant pattern '%s': %s", key, result.error)

        # Invalidate and reload; no incremental sync.
        await self.patterns.load()

    async def add_training_sample(
        self,
        user_id: str,
        description: str,
        category: str,
        amount: float | None,
        transaction_type: int = 1,
    ) -> None:
        features = await asyncio.to_thread(self.extractor.extract_features, description, amount or 0.0)
        sample = TrainingSample(
            user_id=user_id,
            description=description,
            amount=amount or 0.0,
            category=category,
            transaction_type=transaction_type,
            processed_features=json.dumps(features, sort_keys=True),
            is_verified=True,
        )
        result = await self.store.insert(TRAINING_DATA_TABLE, sample.to_row())
        if not result.ok:
            logger.error("[FEEDBACK] Error adding training data: %s", result.error)
