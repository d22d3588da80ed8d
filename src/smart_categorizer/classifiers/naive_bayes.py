import asyncio
from collections.abc import Iterable, Mapping

from sklearn.feature_extraction import DictVectorizer
from sklearn.naive_bayes import MultinomialNB
from sklearn.pipeline import Pipeline

from smart_categorizer.classifiers.base import SuggestionSource
from smart_categorizer.features.extractor import FeatureExtractor, FeatureMap
from smart_categorizer.logger import get_logger
from smart_categorizer.models import CategorySuggestion, Prediction, SuggestionQuery, clamp_confidence

logger = get_logger(__name__)

ML_CONFIDENCE_DAMPENING = 0.8
ML_CONFIDENCE_CEILING = 0.9

LabeledFeatures = tuple[Mapping[str, float], str]


def _build_pipeline() -> Pipeline:
    return Pipeline([
        ("vectorizer", DictVectorizer()),
        ("clf", MultinomialNB()),
    ])


class NaiveBayesClassifier(SuggestionSource):
    """
    Multinomial Naive Bayes over named feature maps.

    Training builds a fresh pipeline and only then swaps it in; inference
    always reads a single pipeline reference.
    """

    name = "ml_model"

    def __init__(
        self,
        extractor: FeatureExtractor,
        dampening: float = ML_CONFIDENCE_DAMPENING,
        ceiling: float = ML_CONFIDENCE_CEILING,
    ):
        self.extractor = extractor
        self.dampening = dampening
        self.ceiling = ceiling
        self.pipeline: Pipeline | None = None
        self.sample_count = 0

    @property
    def is_fitted(self) -> bool:
        return self.pipeline is not None

    def train(self, samples: Iterable[LabeledFeatures]) -> int:
        """
        Fit a new model. Returns the number of samples used; 0 means the
        previous model (if any) was kept.
        """
        try:
            features: list[dict[str, float]] = []
            labels: list[str] = []
            for sample_features, label in samples:
                if not sample_features or not label or not label.strip():
                    continue
                features.append(dict(sample_features))
                labels.append(label.strip())

            if not features:
                logger.warning("[TRAIN] No valid training samples after filtering; keeping current model.")
                return 0

            pipeline = _build_pipeline()
            pipeline.fit(features, labels)
        except Exception as e:
            logger.error("[TRAIN] Naive Bayes training failed: %s", e, exc_info=True)
            self.pipeline = None
            self.sample_count = 0
            return 0

        self.pipeline = pipeline
        self.sample_count = len(features)
        logger.info("[TRAIN] Trained Naive Bayes model with %d samples", len(features))
        return len(features)

    def predict(self, features: FeatureMap) -> Prediction | None:
        pipeline = self.pipeline
        if pipeline is None or not features:
            return None
        try:
            probs = pipeline.predict_proba([features])[0]
            best = int(probs.argmax())
            return Prediction(
                category=str(pipeline.classes_[best]),
                probability=float(probs[best]),
            )
        except Exception as e:
            logger.error("[SUGGEST] ML prediction error: %s", e)
            return None

    def classify(self, description: str, amount: float = 0.0) -> CategorySuggestion | None:
        if self.pipeline is None:
            return None
        prediction = self.predict(self.extractor.extract_features(description, amount))
        if prediction is None:
            return None
        confidence = min(prediction.probability * self.dampening, self.ceiling)
        return CategorySuggestion(
            category=prediction.category,
            confidence=clamp_confidence(confidence, self.ceiling),
            source="ml_model",
        )

    def clear(self) -> None:
        self.pipeline = None
        self.sample_count = 0

    async def suggest(self, query: SuggestionQuery) -> list[CategorySuggestion]:
        if self.pipeline is None:
            return []
        suggestion = await asyncio.to_thread(self.classify, query.description, query.amount)
        return [suggestion] if suggestion else []
