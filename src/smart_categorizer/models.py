from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

SuggestionSourceName = Literal["merchant_pattern", "rule", "ml_model", "user_history", "fallback"]


def clamp_confidence(value: float, ceiling: float = 1.0) -> float:
    return max(0.0, min(float(value), ceiling))


class CategorySuggestion(BaseModel):
    category: str
    confidence: float  # 0.0 to 1.0
    source: SuggestionSourceName
    pattern: Optional[str] = None  # merchant pattern that matched
    rule: Optional[str] = None  # "rule_type:rule_value" key that matched

    @field_validator("confidence")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return clamp_confidence(value)


class SuggestionQuery(BaseModel):
    description: str
    amount: float = 0.0
    transaction_type: int = 1
    user_id: Optional[str] = None

    @property
    def clean_description(self) -> str:
        return self.description.lower().strip()


class Prediction(BaseModel):
    category: str
    probability: float


class _Row(BaseModel):
    """Base for records that cross the storage boundary under column names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_row(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class MerchantPattern(_Row):
    pattern: str
    category: str = Field(alias="suggested_category")
    confidence: float = Field(default=0.7, alias="confidence_score")
    usage_count: int = 0

    @field_validator("pattern")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().upper()


class DefaultRule(_Row):
    rule_type: Literal["keyword", "merchant"]
    rule_value: str
    category: str = Field(alias="suggested_category")
    confidence: float = Field(alias="confidence_score")
    transaction_type: int = Field(default=1, alias="transaction_type_id")
    is_active: bool = True

    @property
    def key(self) -> str:
        return f"{self.rule_type}:{self.rule_value.lower()}"


class TrainingSample(_Row):
    user_id: Optional[str] = None
    description: str
    amount: float = 0.0
    category: str
    transaction_type: int = Field(default=1, alias="transaction_type_id")
    processed_features: Optional[str] = None  # JSON of the feature map
    is_verified: bool = True


class FeedbackEvent(_Row):
    user_id: str
    description: str = Field(alias="transaction_description")
    suggested_category: str
    actual_category: str
    was_accepted: bool = Field(alias="was_suggestion_accepted")
    confidence: float = Field(alias="confidence_score")
    amount: Optional[float] = Field(default=None, alias="transaction_amount")
    merchant_pattern: Optional[str] = None

    def to_row(self) -> dict[str, Any]:
        # Nullable columns are written explicitly
        return self.model_dump(by_alias=True)
