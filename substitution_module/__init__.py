"""
Substitution Module - ranked drug substitution suggestions for pharmacy staff.
"""

from .interface import (
    get_substitutes,
    find_substitutes_for,
    update_data,
    reload_database,
    get_drug_by_id,
    list_drugs,
    list_rules,
    search_catalog,
)
from .engine import SubstitutionEngine, parse_strength
from .errors import CatalogLoadError, DrugNotFound, InvalidInput, SubstitutionError
from .models import Drug, MatchType, SubstitutionRule, SubstitutionSuggestion

__all__ = [
    "get_substitutes",
    "find_substitutes_for",
    "update_data",
    "reload_database",
    "get_drug_by_id",
    "list_drugs",
    "list_rules",
    "search_catalog",
    "SubstitutionEngine",
    "parse_strength",
    "CatalogLoadError",
    "DrugNotFound",
    "InvalidInput",
    "SubstitutionError",
    "Drug",
    "MatchType",
    "SubstitutionRule",
    "SubstitutionSuggestion",
]

__version__ = "1.0.0"
