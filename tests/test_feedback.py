import json
from unittest.mock import AsyncMock, patch

import pytest

from smart_categorizer.classifiers.patterns import MerchantPatternStore
from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.services.feedback import FeedbackRecorder
from smart_categorizer.storage.base import StoreResult
from smart_categorizer.storage.memory import InMemoryRecordStore


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def recorder(store: InMemoryRecordStore) -> FeedbackRecorder:
    return FeedbackRecorder(store, MerchantPatternStore(store), FeatureExtractor())


@pytest.mark.anyio
async def test_correction_creates_pattern_and_training_row(
    store: InMemoryRecordStore, recorder: FeedbackRecorder
) -> None:
    await recorder.record_feedback("u1", "PADARIA DOCE PAO", "Uncategorized", "Alimentação", False, 0.3, 12.5)

    [event] = store.rows("categorization_feedback")
    assert event["transaction_description"] == "PADARIA DOCE PAO"
    assert event["was_suggestion_accepted"] is False
    assert event["merchant_pattern"] == "padaria doce pao"
    assert event["transaction_amount"] == 12.5

    [pattern] = store.rows("merchant_patterns")
    assert pattern["pattern"] == "PADARIA DOCE PAO"
    assert pattern["suggested_category"] == "Alimentação"
    assert pattern["confidence_score"] == 0.7
    assert pattern["usage_count"] == 1

    [sample] = store.rows("ml_training_data")
    assert sample["category"] == "Alimentação"
    assert sample["is_verified"] is True
    assert json.loads(sample["processed_features"])["has_description"] == 1.0

    # The reloaded pattern map serves the correction immediately
    suggestion = recorder.patterns.lookup("PADARIA DOCE PAO 2")
    assert suggestion is not None
    assert suggestion.category == "Alimentação"
    assert suggestion.confidence == pytest.approx(0.701)


@pytest.mark.anyio
async def test_repeated_correction_bumps_usage(store: InMemoryRecordStore, recorder: FeedbackRecorder) -> None:
    await recorder.record_feedback("u1", "uber trip 123", "Lazer", "Transporte", False, 0.4)
    await recorder.record_feedback("u1", "uber trip 456", "Transporte", "Viagem", False, 0.6)

    [pattern] = store.rows("merchant_patterns")
    assert pattern["pattern"] == "UBER TRIP"
    assert pattern["usage_count"] == 2
    assert pattern["suggested_category"] == "Viagem"
    assert pattern["confidence_score"] == 0.7
    assert len(store.rows("ml_training_data")) == 2


@pytest.mark.anyio
async def test_accepted_suggestion_only_adds_training_data(
    store: InMemoryRecordStore, recorder: FeedbackRecorder
) -> None:
    await recorder.record_feedback("u1", "uber trip 123", "Transporte", "Transporte", True, 0.75)

    assert store.rows("merchant_patterns") == []
    assert len(store.rows("categorization_feedback")) == 1
    assert len(store.rows("ml_training_data")) == 1


@pytest.mark.anyio
async def test_no_merchant_means_no_pattern(store: InMemoryRecordStore, recorder: FeedbackRecorder) -> None:
    await recorder.record_feedback("u1", "??", "Uncategorized", "Outros", False, 0.3)

    assert store.rows("categorization_feedback")[0]["merchant_pattern"] is None
    assert store.rows("merchant_patterns") == []
    assert len(store.rows("ml_training_data")) == 1


@pytest.mark.anyio
async def test_failed_feedback_write_stops_processing() -> None:
    store = AsyncMock()
    store.insert.return_value = StoreResult(error="insert failed")
    recorder = FeedbackRecorder(store, MerchantPatternStore(store), FeatureExtractor())

    await recorder.record_feedback("u1", "uber trip", "Lazer", "Transporte", False, 0.4)

    store.insert.assert_awaited_once()
    store.upsert.assert_not_called()
    store.find_many.assert_not_called()


@pytest.mark.anyio
async def test_merchant_extraction_failure_still_records(
    store: InMemoryRecordStore, recorder: FeedbackRecorder
) -> None:
    with patch(
        "smart_categorizer.services.feedback.extract_merchant",
        side_effect=RuntimeError("regex exploded"),
    ):
        await recorder.record_feedback("u1", "uber trip", "Lazer", "Transporte", False, 0.4)

    assert len(store.rows("categorization_feedback")) == 1
    assert store.rows("merchant_patterns") == []
    assert len(store.rows("ml_training_data")) == 1


@pytest.mark.anyio
async def test_errors_are_not_raised(recorder: FeedbackRecorder) -> None:
    with patch.object(recorder, "add_training_sample", side_effect=RuntimeError("disk full")):
        await recorder.record_feedback("u1", "uber trip", "Transporte", "Transporte", True, 0.9)
