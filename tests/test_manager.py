from unittest.mock import AsyncMock, patch

import pytest

from smart_categorizer.features.extractor import FeatureExtractor
from smart_categorizer.manager import SmartCategorizationService
from smart_categorizer.storage.memory import InMemoryRecordStore

UBER_RULE = {
    "rule_type": "keyword",
    "rule_value": "uber",
    "suggested_category": "Transporte",
    "confidence_score": 0.75,
    "transaction_type_id": 1,
    "is_active": True,
}


def _service(tables: dict | None = None, **kwargs) -> SmartCategorizationService:
    return SmartCategorizationService(InMemoryRecordStore(tables), FeatureExtractor(), **kwargs)


def _transactions(count: int) -> list[dict]:
    samples = [
        ("uber trip centro", "Transporte"),
        ("supermercado extra compra", "Alimentação"),
        ("farmacia drogasil", "Saúde"),
    ]
    return [
        {
            "userId": "u1",
            "description": f"{samples[i % 3][0]} {i}",
            "category": samples[i % 3][1],
            "amount": 20.0 + i,
        }
        for i in range(count)
    ]


@pytest.mark.anyio
async def test_rule_only_suggestion() -> None:
    service = _service({"default_category_rules": [UBER_RULE]})

    suggestions = await service.suggest_category("UBER TRIP 123", 25.0, 1)

    assert [(s.category, s.confidence, s.source) for s in suggestions] == [("Transporte", 0.75, "rule")]
    assert suggestions[0].rule == "keyword:uber"


@pytest.mark.anyio
async def test_no_match_returns_fallback() -> None:
    service = _service()

    suggestions = await service.suggest_category("xyz", 0.0, 1)

    assert [(s.category, s.confidence, s.source) for s in suggestions] == [("Uncategorized", 0.3, "fallback")]


@pytest.mark.anyio
async def test_failing_sources_fall_back_once() -> None:
    service = _service({"default_category_rules": [UBER_RULE]})
    await service.initialize()

    for source in service.sources:
        source.suggest = AsyncMock(side_effect=RuntimeError(f"{source.name} down"))

    suggestions = await service.suggest_category("uber trip", 10.0, user_id="u1")

    assert len(suggestions) == 1
    assert suggestions[0].source == "fallback"


@pytest.mark.anyio
async def test_one_failing_source_does_not_hide_others() -> None:
    service = _service({"default_category_rules": [UBER_RULE]})
    await service.initialize()
    service.patterns.suggest = AsyncMock(side_effect=RuntimeError("patterns down"))

    suggestions = await service.suggest_category("uber trip")

    assert [s.category for s in suggestions] == ["Transporte"]


@pytest.mark.anyio
async def test_initialize_failure_returns_fallback() -> None:
    service = _service()

    with patch.object(service.patterns, "load", side_effect=RuntimeError("db down")):
        suggestions = await service.suggest_category("uber trip")

    assert [s.source for s in suggestions] == ["fallback"]
    assert not service.is_initialized


@pytest.mark.anyio
async def test_suggestions_are_limited_to_three() -> None:
    rules = [
        {**UBER_RULE, "rule_value": value, "suggested_category": category, "confidence_score": confidence}
        for value, category, confidence in [
            ("uber", "Transporte", 0.75),
            ("trip", "Viagem", 0.6),
            ("centro", "Lazer", 0.5),
            ("123", "Outros", 0.4),
        ]
    ]
    service = _service({"default_category_rules": rules})

    suggestions = await service.suggest_category("uber trip centro 123")

    assert [s.category for s in suggestions] == ["Transporte", "Viagem", "Lazer"]


@pytest.mark.anyio
async def test_bootstrap_needs_minimum_history() -> None:
    small = _service({"transactions": _transactions(9)})
    await small.initialize()
    assert not small.classifier.is_fitted

    enough = _service({"transactions": _transactions(10)})
    await enough.initialize()
    assert enough.classifier.is_fitted

    suggestions = await enough.suggest_category("farmacia drogasil", 30.0)
    assert suggestions[0].source in {"ml_model", "user_history"}
    assert all(s.confidence <= 0.9 for s in suggestions)


@pytest.mark.anyio
async def test_user_history_contributes() -> None:
    service = _service({"transactions": [
        {"userId": "u1", "description": "academia smart fit", "category": "Saúde", "amount": 99.0},
    ]})

    suggestions = await service.suggest_category("academia smart fit", 99.0, user_id="u1")

    assert [(s.category, s.source) for s in suggestions] == [("Saúde", "user_history")]
    assert suggestions[0].confidence == pytest.approx(0.8)


@pytest.mark.anyio
async def test_feedback_teaches_new_pattern() -> None:
    service = _service()
    assert (await service.suggest_category("PADARIA DOCE PAO"))[0].source == "fallback"

    await service.record_feedback("u1", "PADARIA DOCE PAO", "Uncategorized", "Alimentação", False, 0.3)
    suggestions = await service.suggest_category("PADARIA DOCE PAO 2")

    assert suggestions[0].category == "Alimentação"
    assert suggestions[0].source == "merchant_pattern"
    assert suggestions[0].confidence == pytest.approx(0.701)


@pytest.mark.anyio
async def test_reload_picks_up_new_rules() -> None:
    store = InMemoryRecordStore()
    service = SmartCategorizationService(store, FeatureExtractor())
    await service.initialize()

    await store.insert("default_category_rules", UBER_RULE)
    await service.reload()

    assert len(service.rules) == 1
    assert (await service.suggest_category("uber"))[0].category == "Transporte"
