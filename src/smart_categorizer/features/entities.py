import threading
from typing import Any

import spacy

from smart_categorizer.logger import get_logger

logger = get_logger(__name__)

# spaCy labels differ between language models (pt uses LOC, en uses GPE/FAC).
PLACE_LABELS = frozenset({"LOC", "GPE", "FAC"})
ORG_LABELS = frozenset({"ORG"})


class EntityRecognizer:
    """
    Lazy wrapper around a spaCy pipeline used for place/organization mentions.

    A missing or broken model disables the pass instead of failing extraction.
    """

    def __init__(self, model_name: str | None):
        self.model_name = model_name
        self._nlp: Any = None
        self._disabled = not model_name
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return not self._disabled

    def _get_nlp(self) -> Any:
        if self._disabled:
            return None
        if self._nlp is not None:
            return self._nlp
        with self._lock:
            if self._nlp is None and not self._disabled:
                try:
                    # Only NER is needed
                    self._nlp = spacy.load(
                        self.model_name,
                        disable=["parser", "lemmatizer", "textcat"],
                    )
                    logger.info("[FEATURES] Loaded spaCy model '%s'.", self.model_name)
                except OSError:
                    logger.warning(
                        "[FEATURES] spaCy model '%s' not found. Install with: "
                        "python -m spacy download %s. Entity features disabled.",
                        self.model_name,
                        self.model_name,
                    )
                    self._disabled = True
        return self._nlp

    def entities(self, text: str) -> tuple[list[str], list[str]]:
        """Return (places, organizations) mentioned in text."""
        nlp = self._get_nlp()
        if nlp is None:
            return [], []

        places: list[str] = []
        organizations: list[str] = []
        for ent in nlp(text).ents:
            value = ent.text.strip().lower()
            if not value:
                continue
            if ent.label_ in PLACE_LABELS:
                places.append(value)
            elif ent.label_ in ORG_LABELS:
                organizations.append(value)
        return places, organizations
