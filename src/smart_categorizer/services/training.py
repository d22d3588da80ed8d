import asyncio
from time import perf_counter
from typing import Any

from smart_categorizer.classifiers.naive_bayes import LabeledFeatures, NaiveBayesClassifier
from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.logger import get_logger
from smart_categorizer.services.feedback import TRAINING_DATA_TABLE
from smart_categorizer.storage.base import RecordStore, StoreQuery

logger = get_logger(__name__)

TRANSACTIONS_TABLE = "transactions"


def valid_training_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    valid = []
    for row in rows:
        description = row.get("description")
        category = row.get("category")
        if not isinstance(description, str) or not description.strip():
            continue
        if not isinstance(category, str) or not category.strip():
            continue
        valid.append(row)
    return valid


class TrainingManager:
    """
    Builds the classifier from stored data: the bootstrap path reads raw
    transaction history, retraining reads verified feedback samples.
    """

    def __init__(
        self,
        store: RecordStore,
        classifier: NaiveBayesClassifier,
        extractor: FeatureExtractor,
        *,
        retrain_min_samples: int = 50,
        bootstrap_min_samples: int = 10,
        bootstrap_limit: int = 5000,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.extractor = extractor
        self.retrain_min_samples = retrain_min_samples
        self.bootstrap_min_samples = bootstrap_min_samples
        self.bootstrap_limit = bootstrap_limit
        self.active = False
        self.status: dict[str, Any] = {"stage": "idle", "active": False}

    def get_status(self) -> dict[str, Any]:
        status = dict(self.status)
        status["active"] = self.active
        status["model_fitted"] = self.classifier.is_fitted
        status["model_samples"] = self.classifier.sample_count
        return status

    def _set_status(self, stage: str, **fields: Any) -> None:
        self.status.clear()
        self.status.update({"stage": stage, **fields})

    def _train_rows(self, rows: list[dict[str, Any]]) -> int:
        samples: list[LabeledFeatures] = []
        for row in rows:
            try:
                features = self.extractor.extract_features(row["description"], row.get("amount") or 0.0)
            except Exception as e:
                logger.warning("[TRAIN] Error extracting features for '%s': %s", row.get("description"), e)
                continue
            if features:
                samples.append((features, row["category"]))
        return self.classifier.train(samples)

    async def bootstrap(self) -> None:
        """
        Opportunistic first training from transaction history. Too little
        data leaves the classifier absent and suggestions rule-based.
        """
        if self.active:
            logger.info("[TRAIN] Training already in progress; skipping bootstrap.")
            return

        self.active = True
        self._set_status("bootstrapping")
        try:
            result = await self.store.find_many(
                TRANSACTIONS_TABLE,
                StoreQuery(not_null=("category", "description"), limit=self.bootstrap_limit),
            )
            if not result.ok:
                logger.error("[TRAIN] Error loading training data: %s", result.error)
                self._set_status("error", message=result.error)
                return

            rows = valid_training_rows(result.data)
            if len(rows) < self.bootstrap_min_samples:
                logger.info(
                    "[TRAIN] Insufficient valid training data (%d samples), using rule-based approach only",
                    len(rows),
                )
                self._set_status("skipped", samples=len(rows))
                return

            start = perf_counter()
            trained = await asyncio.to_thread(self._train_rows, rows)
            self._set_status(
                "complete" if trained else "skipped",
                samples=trained,
                seconds=round(perf_counter() - start, 3),
            )
        except Exception as e:
            logger.error("[TRAIN] Error during bootstrap training: %s", e, exc_info=True)
            self._set_status("error", message=str(e))
        finally:
            self.active = False

    async def retrain_model(self) -> None:
        """
        Rebuild the classifier from all verified training samples. Safe to
        run repeatedly; unchanged data yields an equivalent model.
        """
        if self.active:
            logger.info("[TRAIN] Training already in progress; skipping retrain.")
            return

        logger.info("[TRAIN] Starting model retraining...")
        self.active = True
        self._set_status("retraining")
        try:
            result = await self.store.find_many(
                TRAINING_DATA_TABLE,
                StoreQuery(filters={"is_verified": True}),
            )
            if not result.ok:
                logger.error("[TRAIN] Error fetching training data for retraining: %s", result.error)
                self._set_status("error", message=result.error)
                return

            rows = valid_training_rows(result.data)
            if len(rows) < self.retrain_min_samples:
                logger.info(
                    "[TRAIN] Insufficient data for retraining (%d < %d)",
                    len(rows),
                    self.retrain_min_samples,
                )
                self._set_status("skipped", samples=len(rows))
                return

            start = perf_counter()
            trained = await asyncio.to_thread(self._train_rows, rows)
            elapsed = perf_counter() - start
            self._set_status(
                "complete" if trained else "skipped",
                samples=trained,
                seconds=round(elapsed, 3),
            )
            logger.info("[TRAIN] Model retrained with %d samples in %.2f s", trained, elapsed)
        except Exception as e:
            logger.error("[TRAIN] Error during model retraining: %s", e, exc_info=True)
            self._set_status("error", message=str(e))
        finally:
            self.active = False
