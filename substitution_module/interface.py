"""
Public Interface for Substitution Module
Clean entry point for integration with the pharmacy backend.
"""
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .catalog import load_drugs, load_rules
from .config import load_settings
from .engine import SubstitutionEngine, filter_drugs, search_drugs
from .errors import DrugNotFound, InvalidInput
from .models import Drug, SubstitutionRule, SubstitutionSuggestion

logger = logging.getLogger(__name__)

# Global engine instance (singleton pattern for efficiency)
_engine: Optional[SubstitutionEngine] = None


def _load_engine_data():
    settings = load_settings()
    return load_drugs(settings.catalog_path), load_rules(settings.rules_path)


def _get_engine() -> SubstitutionEngine:
    """Get or create the global engine instance."""
    global _engine
    if _engine is None:
        drugs, rules = _load_engine_data()
        _engine = SubstitutionEngine(drugs, rules)
    return _engine


def _format_drug(drug: Drug) -> Dict[str, Any]:
    return {
        "id": drug.id,
        "name": drug.name,
        "generic_name": drug.generic_name,
        "brand_name": drug.brand_name,
        "active_molecule": drug.active_molecule,
        "dosage": drug.dosage,
        "dosage_form": drug.dosage_form,
        "manufacturer": drug.manufacturer,
        "category": drug.category,
        "stock_level": drug.stock_level,
        "stock_status": drug.stock_status,
    }


def _format_suggestion(suggestion: SubstitutionSuggestion) -> Dict[str, Any]:
    return {
        "drug": _format_drug(suggestion.drug),
        "match_type": suggestion.match_type.value,
        "confidence": suggestion.confidence,
        "confidence_band": suggestion.confidence_band,
        "reason": suggestion.reason,
        "dosage_adjustment": suggestion.dosage_adjustment,
        "warnings": suggestion.warnings or [],
    }


def _format_result(target: Drug, suggestions: List[SubstitutionSuggestion]) -> Dict:
    if not suggestions:
        return {
            "status": "not_found",
            "target": _format_drug(target),
            "suggestions": [],
            "count": 0,
            "message": "No suitable alternatives were found for this medication",
        }

    return {
        "status": "success",
        "target": _format_drug(target),
        "suggestions": [_format_suggestion(s) for s in suggestions],
        "count": len(suggestions),
    }


def get_substitutes(drug_id: str, available_only: bool = True) -> Dict:
    """
    Public interface function to get ranked substitutes for a catalog drug.

    Args:
        drug_id: Catalog ID of the drug to replace (e.g., "d-001")
        available_only: Skip candidates that are out of stock

    Returns:
        Dictionary with structure:
        {
            "status": "success" | "not_found",
            "target": {"id": "d-001", "name": "Panadol 500mg", ...},
            "suggestions": [
                {
                    "drug": {"id": "d-002", "name": "Paracetamol 500mg", ...},
                    "match_type": "exact",
                    "confidence": 95,
                    "confidence_band": "high",
                    "reason": "Same active molecule (Paracetamol), ...",
                    "dosage_adjustment": None,
                    "warnings": []
                },
                ...
            ],
            "count": <number of suggestions>
        }

        A "not_found" result also carries a "message".

    Raises:
        DrugNotFound: no catalog entry has this ID
    """
    engine = _get_engine()
    target = engine.get_drug_by_id(drug_id)
    if target is None:
        raise DrugNotFound(drug_id)

    return _format_result(target, engine.find_substitutes(target, available_only))


def find_substitutes_for(target: Union[Drug, Mapping[str, Any]], available_only: bool = True) -> Dict:
    """
    Rank substitutes for a drug that need not be in the catalog.
    Mappings are validated into a Drug first (camelCase keys accepted).

    Raises:
        InvalidInput: target is missing or malformed
    """
    if isinstance(target, Mapping):
        try:
            target = Drug.model_validate(target)
        except ValidationError as e:
            raise InvalidInput(f"Malformed target drug: {e}") from e

    engine = _get_engine()
    return _format_result(target, engine.find_substitutes(target, available_only))


def update_data(drugs: Iterable[Drug], rules: Iterable[SubstitutionRule] = ()):
    """Replace the catalog and rule set used by subsequent lookups."""
    global _engine
    if _engine is None:
        _engine = SubstitutionEngine(drugs, rules)
    else:
        _engine.update_data(drugs, rules)


def reload_database():
    """
    Reload the catalog and rules from disk.
    Useful for hot-reloading in production without restarting the service.
    """
    drugs, rules = _load_engine_data()
    update_data(drugs, rules)
    logger.info("Reloaded %d drugs and %d rules from disk", len(drugs), len(rules))


def get_drug_by_id(drug_id: str) -> Optional[Drug]:
    return _get_engine().get_drug_by_id(drug_id)


def list_drugs() -> List[Drug]:
    return list(_get_engine().drugs)


def list_rules(active_only: bool = False) -> List[SubstitutionRule]:
    rules = _get_engine().rules
    return [rule for rule in rules if rule.is_active or not active_only]


def search_catalog(
    query: str = "",
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    manufacturer: Optional[str] = None,
    requires_prescription: Optional[bool] = None,
    is_controlled: Optional[bool] = None,
) -> List[Drug]:
    """
    Search drugs by name, generic/brand name, molecule, manufacturer or
    category, then narrow by the exact-value filters given.
    """
    return filter_drugs(
        search_drugs(_get_engine().drugs, query),
        category=category,
        stock_status=stock_status,
        manufacturer=manufacturer,
        requires_prescription=requires_prescription,
        is_controlled=is_controlled,
    )
