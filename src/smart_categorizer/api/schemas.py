from pydantic import BaseModel, Field

from smart_categorizer.models import CategorySuggestion


class SuggestCategoryRequest(BaseModel):
    description: str = Field(min_length=1)
    amount: float = 0.0
    transaction_type: int = 1
    user_id: str | None = None


class SuggestCategoryResponse(BaseModel):
    success: bool = True
    suggestions: list[CategorySuggestion]
    description: str


class FeedbackRequest(BaseModel):
    user_id: str
    transaction_description: str = Field(min_length=1)
    suggested_category: str = "None"
    actual_category: str = Field(min_length=1)
    was_accepted: bool = False
    confidence: float = 0.5
    amount: float | None = None
