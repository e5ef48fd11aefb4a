"""
Data records for the substitution module.
Field names are snake_case; camelCase aliases are accepted so catalog JSON
exported by the web client loads unchanged.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MatchType(str, Enum):
    EXACT = "exact"
    EQUIVALENT = "equivalent"
    SIMILAR = "similar"


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Drug(_Record):
    """A pharmacy catalog entry. Never mutated by the engine."""

    id: str
    name: str
    generic_name: str = ""
    brand_name: str = ""
    active_molecule: str
    dosage: str
    dosage_form: str  # tablet, capsule, syrup, injection, etc.
    strength: str = ""
    manufacturer: str = ""
    barcode: Optional[str] = None
    category: str = ""
    is_controlled: bool = False
    requires_prescription: bool = False
    expiry_date: Optional[str] = None
    batch_number: Optional[str] = None
    stock_level: int = 0
    min_stock_level: int = 0
    max_stock_level: int = 0
    unit_price: float = 0.0
    is_custom: bool = False

    @property
    def stock_status(self) -> str:
        if self.stock_level <= 0:
            return "out-of-stock"
        if self.stock_level <= self.min_stock_level:
            return "low-stock"
        return "in-stock"


class SubstitutionRule(_Record):
    """Pharmacy-authored override keyed on (molecule, dosage, form)."""

    id: str = ""
    active_molecule: str
    dosage: str
    dosage_form: str
    equivalent_drugs: List[str] = Field(default_factory=list)  # drug IDs, in order
    substitution_ratio: float = Field(default=1.0, gt=0)
    notes: Optional[str] = None
    is_active: bool = True


class SubstitutionSuggestion(_Record):
    drug: Drug
    match_type: MatchType
    confidence: int = Field(..., ge=0, le=100)
    reason: str
    dosage_adjustment: Optional[str] = None
    warnings: Optional[List[str]] = None

    @property
    def confidence_band(self) -> str:
        if self.confidence >= 90:
            return "high"
        if self.confidence >= 70:
            return "medium"
        if self.confidence >= 50:
            return "low"
        return "very-low"
