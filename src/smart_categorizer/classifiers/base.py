from abc import ABC, abstractmethod

from smart_categorizer.models import CategorySuggestion, SuggestionQuery


class SuggestionSource(ABC):
    name: str = "source"

    @abstractmethod
    async def suggest(self, query: SuggestionQuery) -> list[CategorySuggestion]:
        """Return zero or more candidate categories for the query."""
        pass
