from unittest.mock import MagicMock, patch

import pytest

from smart_categorizer.classifiers.naive_bayes import NaiveBayesClassifier
from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.models import SuggestionQuery

TRAINING = [
    ("uber trip centro", 25.0, "Transporte"),
    ("uber viagem aeroporto", 60.0, "Transporte"),
    ("99 taxi corrida", 18.0, "Transporte"),
    ("supermercado extra compra", 230.0, "Alimentação"),
    ("padaria doce pao", 12.0, "Alimentação"),
    ("ifood restaurante pedido", 45.0, "Alimentação"),
]


@pytest.fixture
def extractor() -> FeatureExtractor:
    return FeatureExtractor()


@pytest.fixture
def classifier(extractor: FeatureExtractor) -> NaiveBayesClassifier:
    model = NaiveBayesClassifier(extractor)
    model.train(
        (extractor.extract_features(description, amount), category)
        for description, amount, category in TRAINING
    )
    return model


def test_train_and_classify(classifier: NaiveBayesClassifier) -> None:
    assert classifier.is_fitted
    assert classifier.sample_count == len(TRAINING)

    suggestion = classifier.classify("uber trip", 30.0)

    assert suggestion is not None
    assert suggestion.category == "Transporte"
    assert suggestion.source == "ml_model"
    assert 0 < suggestion.confidence <= 0.9


def test_confidence_is_dampened(classifier: NaiveBayesClassifier, extractor: FeatureExtractor) -> None:
    prediction = classifier.predict(extractor.extract_features("padaria pao", 10.0))
    suggestion = classifier.classify("padaria pao", 10.0)

    assert prediction is not None and suggestion is not None
    assert suggestion.confidence == pytest.approx(min(prediction.probability * 0.8, 0.9))


def test_unfitted_model_suggests_nothing(extractor: FeatureExtractor) -> None:
    model = NaiveBayesClassifier(extractor)

    assert not model.is_fitted
    assert model.classify("uber trip") is None
    assert model.predict({"tok:uber": 1.0}) is None


def test_empty_features_predict_nothing(classifier: NaiveBayesClassifier) -> None:
    assert classifier.predict({}) is None


def test_training_without_valid_samples_keeps_model(classifier: NaiveBayesClassifier) -> None:
    pipeline = classifier.pipeline

    assert classifier.train([({}, "Transporte"), ({"tok:uber": 1.0}, "  ")]) == 0
    assert classifier.pipeline is pipeline


def test_failed_fit_leaves_model_absent(classifier: NaiveBayesClassifier) -> None:
    broken = MagicMock()
    broken.fit.side_effect = ValueError("bad input")
    with patch("smart_categorizer.classifiers.naive_bayes._build_pipeline", return_value=broken):
        assert classifier.train([({"tok:uber": 1.0}, "Transporte")]) == 0

    assert classifier.pipeline is None
    assert classifier.sample_count == 0


def test_prediction_error_returns_none(classifier: NaiveBayesClassifier) -> None:
    with patch.object(classifier.pipeline, "predict_proba", side_effect=RuntimeError("boom")):
        assert classifier.predict({"tok:uber": 1.0}) is None


def test_unknown_features_still_predict(classifier: NaiveBayesClassifier) -> None:
    prediction = classifier.predict({"tok:nunca": 1.0, "org:desconhecida": 1.0})

    assert prediction is not None
    assert prediction.category in {"Transporte", "Alimentação"}


def test_training_is_deterministic(extractor: FeatureExtractor) -> None:
    results = []
    for _ in range(2):
        model = NaiveBayesClassifier(extractor)
        model.train(
            (extractor.extract_features(description, amount), category)
            for description, amount, category in TRAINING
        )
        results.append(model.classify("supermercado compra", 100.0))

    assert results[0] == results[1]


def test_clear(classifier: NaiveBayesClassifier) -> None:
    classifier.clear()

    assert not classifier.is_fitted
    assert classifier.sample_count == 0


@pytest.mark.anyio
async def test_suggest(classifier: NaiveBayesClassifier) -> None:
    suggestions = await classifier.suggest(SuggestionQuery(description="uber viagem", amount=40.0))

    assert [s.category for s in suggestions] == ["Transporte"]
