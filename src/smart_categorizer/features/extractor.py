import math
from collections.abc import Callable
from dataclasses import dataclass, field

from nltk.stem.snowball import SnowballStemmer
from nltk.tokenize import RegexpTokenizer

from smart_categorizer.features import lexicon
from smart_categorizer.features.entities import EntityRecognizer
from smart_categorizer.features.merchant import extract_merchant
from smart_categorizer.logger import get_logger

logger = get_logger(__name__)

FeatureMap = dict[str, float]

_WORD_TOKENIZER = RegexpTokenizer(r"\w+")


def tokenize(text: str) -> list[str]:
    """Split text into word tokens, falling back to whitespace on tokenizer errors."""
    try:
        return _WORD_TOKENIZER.tokenize(text)
    except Exception as e:
        logger.warning("[FEATURES] Tokenizer failed, using whitespace split: %s", e)
        return [token for token in text.split() if token]


def normalize_amount(amount: float | int | str | None) -> float:
    try:
        value = float(amount) if amount is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


@dataclass
class ExtractionContext:
    raw: str
    clean: str
    amount: float
    tokens: list[str] = field(default_factory=list)


Signal = Callable[[ExtractionContext], FeatureMap]


class FeatureExtractor:
    """
    Turns a description + amount into a sparse named feature map.

    Every signal runs on its own; a failing signal is logged and skipped.
    """

    def __init__(self, entity_recognizer: EntityRecognizer | None = None):
        self.stemmer = SnowballStemmer(lexicon.STEMMER_LANGUAGE)
        self.entity_recognizer = entity_recognizer
        self.signals: list[tuple[str, Signal]] = [
            ("tokens", self._token_features),
            ("merchant", self._merchant_feature),
            ("amount", self._amount_feature),
            ("length", self._length_feature),
            ("banking_terms", self._banking_features),
            ("currency", self._currency_feature),
            ("tax_ids", self._tax_id_features),
            ("entities", self._entity_features),
        ]

    def extract_features(self, description: str | None, amount: float | None = 0.0) -> FeatureMap:
        if not description or not isinstance(description, str):
            return {}

        clean = description.lower().strip()
        if not clean:
            return {}

        ctx = ExtractionContext(
            raw=description.strip(),
            clean=clean,
            amount=normalize_amount(amount),
        )
        try:
            ctx.tokens = self.process_tokens(clean)
        except Exception as e:
            logger.warning("[FEATURES] Token processing failed for '%s': %s", clean[:50], e)

        features: FeatureMap = {}
        for name, signal in self.signals:
            try:
                contribution = signal(ctx)
            except Exception as e:
                logger.warning("[FEATURES] Signal '%s' failed for '%s': %s", name, clean[:50], e)
                continue
            for key, value in contribution.items():
                features[key] = features.get(key, 0.0) + value

        return {key: value for key, value in features.items() if value > 0}

    def process_tokens(self, clean: str) -> list[str]:
        tokens = tokenize(clean)

        try:
            tokens = [token for token in tokens if token not in lexicon.STOP_WORDS]
        except Exception as e:
            logger.warning("[FEATURES] Stop word removal failed: %s", e)

        stemmed: list[str] = []
        for token in tokens:
            try:
                stemmed.append(self.stemmer.stem(token))
            except Exception:
                stemmed.append(token)

        return [
            token for token in stemmed
            if isinstance(token, str) and token.strip() and len(token) <= lexicon.MAX_TOKEN_LENGTH
        ]

    def _token_features(self, ctx: ExtractionContext) -> FeatureMap:
        features: FeatureMap = {}
        for token in ctx.tokens:
            key = f"tok:{token}"
            features[key] = features.get(key, 0.0) + 1.0
        return features

    def _merchant_feature(self, ctx: ExtractionContext) -> FeatureMap:
        return {"has_merchant": 1.0} if extract_merchant(ctx.clean) else {}

    def _amount_feature(self, ctx: ExtractionContext) -> FeatureMap:
        if ctx.amount <= 0:
            return {}
        return {f"amount:{lexicon.amount_bucket(ctx.amount)}": 1.0}

    def _length_feature(self, ctx: ExtractionContext) -> FeatureMap:
        return {"has_description": 1.0}

    def _banking_features(self, ctx: ExtractionContext) -> FeatureMap:
        return {name: 1.0 for term, name in lexicon.BANKING_TERMS.items() if term in ctx.clean}

    def _currency_feature(self, ctx: ExtractionContext) -> FeatureMap:
        if any(marker in ctx.clean for marker in lexicon.CURRENCY_MARKERS):
            return {"currency": 1.0}
        return {}

    def _tax_id_features(self, ctx: ExtractionContext) -> FeatureMap:
        features: FeatureMap = {}
        if lexicon.CPF_PATTERN.search(ctx.clean):
            features["cpf"] = 1.0
        if lexicon.CNPJ_PATTERN.search(ctx.clean):
            features["cnpj"] = 1.0
        return features

    def _entity_features(self, ctx: ExtractionContext) -> FeatureMap:
        if self.entity_recognizer is None:
            return {}
        # Casing helps NER, so the untouched text is used here
        places, organizations = self.entity_recognizer.entities(ctx.raw)
        features: FeatureMap = {}
        for place in places:
            features[f"place:{place}"] = features.get(f"place:{place}", 0.0) + 1.0
        for org in organizations:
            features[f"org:{org}"] = features.get(f"org:{org}", 0.0) + 1.0
        return features
