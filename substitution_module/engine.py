"""
Substitution Engine - ranks alternative drugs for a requested medication.

Four independent matching passes run over the candidate pool (exact,
equivalent, similar, rule-based). Their outputs are merged in that order,
deduplicated by drug ID (first seen wins) and stably sorted by confidence.
The engine holds no state besides the bound catalog/rule snapshot.
"""
import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from .errors import InvalidInput
from .models import Drug, MatchType, SubstitutionRule, SubstitutionSuggestion

logger = logging.getLogger(__name__)

EXACT_CONFIDENCE = 95
RULE_CONFIDENCE = 85
EQUIVALENT_BASE, EQUIVALENT_CAP = 80, 90
SIMILAR_BASE, SIMILAR_CAP = 40, 75
SIMILAR_MIN_CONFIDENCE = 30

DIFFERENT_MOLECULE_WARNING = "Different active molecule - consult pharmacist before substitution"
CONTROLLED_WARNING = "Controlled substance - verify prescription requirements"
MANUFACTURER_WARNING = "Different manufacturer - monitor patient response"

# ASCII digits only; units are case-insensitive
_STRENGTH_RE = re.compile(r"([0-9]+(?:\.[0-9]+)?)\s*(mg|g|ml|mcg|µg)", re.IGNORECASE)
_TO_MG = {"g": 1000.0, "mcg": 0.001, "µg": 0.001}  # ml is taken as 1:1 with mg

MatchPass = Callable[[Drug, Sequence[Drug], Sequence[SubstitutionRule]], List[SubstitutionSuggestion]]


def _same(a: str, b: str) -> bool:
    return a.lower() == b.lower()


def format_multiplier(value: float) -> str:
    """One decimal place, ties rounded away from zero (1.25 -> "1.3")."""
    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_ratio(value: float) -> str:
    """Shortest round-trip text: 2.0 -> "2", 0.5 -> "0.5", 1/3 -> "0.3333333333333333"."""
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def parse_strength(dosage: str) -> Optional[float]:
    """
    Parse a strength in milligrams from a dosage string.

    "500mg" -> 500.0, "1g" -> 1000.0, "50mcg" -> 0.05, "5ml" -> 5.0.
    Returns None when no magnitude+unit is found.
    """
    match = _STRENGTH_RE.search(dosage or "")
    if not match:
        return None
    value = float(match.group(1))
    return value * _TO_MG.get(match.group(2).lower(), 1.0)


def equivalent_confidence(target: Drug, candidate: Drug) -> int:
    confidence = EQUIVALENT_BASE

    if _same(target.dosage_form, candidate.dosage_form):
        confidence += 10

    # Up to 10 points for strength closeness; zero or unparsed strengths give nothing
    target_strength = parse_strength(target.dosage)
    candidate_strength = parse_strength(candidate.dosage)
    if target_strength and candidate_strength:
        ratio = min(target_strength, candidate_strength) / max(target_strength, candidate_strength)
        confidence += math.floor(ratio * 10)

    # Both branded or both generic
    if bool(target.brand_name) == bool(candidate.brand_name):
        confidence += 5

    return min(confidence, EQUIVALENT_CAP)


def dosage_adjustment(target: Drug, candidate: Drug) -> Optional[str]:
    """Describe how to scale the candidate's dose to match the target's."""
    target_strength = parse_strength(target.dosage)
    candidate_strength = parse_strength(candidate.dosage)
    if not target_strength or not candidate_strength:
        return None

    ratio = target_strength / candidate_strength
    if ratio == 1:
        return None

    pair = f"({candidate.dosage} → equivalent to {target.dosage})"
    if ratio > 1:
        return f"Take {format_multiplier(ratio)}x the usual dose {pair}"
    return f"Take {format_multiplier(1 / ratio)}x less {pair}"


def substitution_warnings(target: Drug, candidate: Drug) -> List[str]:
    warnings: List[str] = []

    if not _same(target.dosage_form, candidate.dosage_form):
        warnings.append(f"Different dosage form: {target.dosage_form} → {candidate.dosage_form}")

    if target.is_controlled or candidate.is_controlled:
        warnings.append(CONTROLLED_WARNING)

    # Manufacturer changes only matter for cardiac drugs
    if target.manufacturer != candidate.manufacturer and "cardiac" in target.category.lower():
        warnings.append(MANUFACTURER_WARNING)

    return warnings


def have_similar_names(name1: str, name2: str) -> bool:
    """
    Coarse name similarity: either cleaned name contains the first four
    letters of the other. Not an edit distance; an empty name matches anything.
    """
    clean1 = re.sub(r"[^a-z]", "", (name1 or "").lower())
    clean2 = re.sub(r"[^a-z]", "", (name2 or "").lower())
    return clean2[:4] in clean1 or clean1[:4] in clean2


def therapeutic_similarity(target: Drug, candidate: Drug) -> int:
    similarity = SIMILAR_BASE
    if _same(target.dosage_form, candidate.dosage_form):
        similarity += 20
    if have_similar_names(target.generic_name, candidate.generic_name):
        similarity += 15
    return min(similarity, SIMILAR_CAP)


def _is_exact(target: Drug, drug: Drug) -> bool:
    return (
        _same(drug.active_molecule, target.active_molecule)
        and drug.dosage == target.dosage
        and _same(drug.dosage_form, target.dosage_form)
    )


def exact_matches(target: Drug, pool: Sequence[Drug], rules: Sequence[SubstitutionRule] = ()) -> List[SubstitutionSuggestion]:
    """Same molecule, dosage and form."""
    return [
        SubstitutionSuggestion(
            drug=drug,
            match_type=MatchType.EXACT,
            confidence=EXACT_CONFIDENCE,
            reason=f"Same active molecule ({drug.active_molecule}), dosage ({drug.dosage}), and form ({drug.dosage_form})",
        )
        for drug in pool
        if _is_exact(target, drug)
    ]


def equivalent_matches(target: Drug, pool: Sequence[Drug], rules: Sequence[SubstitutionRule] = ()) -> List[SubstitutionSuggestion]:
    """Same molecule with a different dosage or form."""
    return [
        SubstitutionSuggestion(
            drug=drug,
            match_type=MatchType.EQUIVALENT,
            confidence=equivalent_confidence(target, drug),
            reason=f"Same active molecule ({drug.active_molecule}) with {drug.dosage} {drug.dosage_form}",
            dosage_adjustment=dosage_adjustment(target, drug),
            warnings=substitution_warnings(target, drug),
        )
        for drug in pool
        if _same(drug.active_molecule, target.active_molecule) and not _is_exact(target, drug)
    ]


def similar_matches(target: Drug, pool: Sequence[Drug], rules: Sequence[SubstitutionRule] = ()) -> List[SubstitutionSuggestion]:
    """Different molecule in the same therapeutic category."""
    suggestions: List[SubstitutionSuggestion] = []
    for drug in pool:
        if not _same(drug.category, target.category) or _same(drug.active_molecule, target.active_molecule):
            continue
        similarity = therapeutic_similarity(target, drug)
        if similarity < SIMILAR_MIN_CONFIDENCE:
            continue
        suggestions.append(SubstitutionSuggestion(
            drug=drug,
            match_type=MatchType.SIMILAR,
            confidence=similarity,
            reason=f"Similar therapeutic class ({drug.category})",
            warnings=[DIFFERENT_MOLECULE_WARNING],
        ))
    return suggestions


def rule_matches(target: Drug, pool: Sequence[Drug], rules: Sequence[SubstitutionRule] = ()) -> List[SubstitutionSuggestion]:
    """Drugs listed by active pharmacy rules keyed on the target's molecule, dosage and form."""
    by_id = {drug.id: drug for drug in pool}
    suggestions: List[SubstitutionSuggestion] = []

    for rule in rules:
        if not _rule_applies(rule, target):
            continue
        adjustment = None
        if rule.substitution_ratio != 1:
            adjustment = f"Adjust dose by factor of {format_ratio(rule.substitution_ratio)}"
        for drug_id in rule.equivalent_drugs:
            drug = by_id.get(drug_id)
            if drug is None:
                continue
            suggestions.append(SubstitutionSuggestion(
                drug=drug,
                match_type=MatchType.EQUIVALENT,
                confidence=RULE_CONFIDENCE,
                reason=f"Custom substitution rule: {rule.notes or 'Pharmacy-approved equivalent'}",
                dosage_adjustment=adjustment,
            ))
    return suggestions


def _rule_applies(rule: SubstitutionRule, target: Drug) -> bool:
    return (
        rule.is_active
        and _same(rule.active_molecule, target.active_molecule)
        and rule.dosage == target.dosage
        and _same(rule.dosage_form, target.dosage_form)
    )


# Order matters: earlier passes win when the same drug is found twice
MATCH_PASSES: Tuple[MatchPass, ...] = (exact_matches, equivalent_matches, similar_matches, rule_matches)


def merge_suggestions(batches: Iterable[Sequence[SubstitutionSuggestion]]) -> List[SubstitutionSuggestion]:
    """Concatenate, keep the first suggestion per drug ID, sort by confidence (stable)."""
    seen = set()
    unique: List[SubstitutionSuggestion] = []
    for batch in batches:
        for suggestion in batch:
            if suggestion.drug.id in seen:
                continue
            seen.add(suggestion.drug.id)
            unique.append(suggestion)
    return sorted(unique, key=lambda s: s.confidence, reverse=True)


def search_drugs(drugs: Iterable[Drug], query: str) -> List[Drug]:
    """
    Case-insensitive substring search over the catalog's name fields and
    category. Barcodes are matched case-sensitively against the raw query.
    """
    q = (query or "").lower().strip()
    if not q:
        return list(drugs)
    return [
        drug for drug in drugs
        if any(q in field.lower() for field in (
            drug.name, drug.generic_name, drug.brand_name,
            drug.active_molecule, drug.manufacturer, drug.category,
        ))
        or (drug.barcode is not None and query in drug.barcode)
    ]


def filter_drugs(
    drugs: Iterable[Drug],
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    manufacturer: Optional[str] = None,
    requires_prescription: Optional[bool] = None,
    is_controlled: Optional[bool] = None,
) -> List[Drug]:
    """Exact-value catalog filters; None or empty means "any"."""
    return [
        drug for drug in drugs
        if (not category or drug.category == category)
        and (not stock_status or drug.stock_status == stock_status)
        and (not manufacturer or drug.manufacturer == manufacturer)
        and (requires_prescription is None or drug.requires_prescription == requires_prescription)
        and (is_controlled is None or drug.is_controlled == is_controlled)
    ]


def validate_target(target: object) -> Drug:
    if target is None:
        raise InvalidInput("Target drug is required")
    if not isinstance(target, Drug):
        raise InvalidInput(f"Target must be a Drug, got {type(target).__name__}")
    missing = [
        field for field in ("id", "active_molecule", "dosage", "dosage_form")
        if not getattr(target, field).strip()
    ]
    if missing:
        raise InvalidInput(f"Target drug is missing: {', '.join(missing)}")
    return target


class _Snapshot(NamedTuple):
    drugs: Tuple[Drug, ...]
    rules: Tuple[SubstitutionRule, ...]


class SubstitutionEngine:
    """
    Finds substitute drugs for a target against a bound catalog and rule set.

    The catalog and rules are held as one immutable snapshot; update_data()
    replaces it in a single assignment so a call never sees a half update.
    """

    def __init__(self, drugs: Iterable[Drug] = (), rules: Iterable[SubstitutionRule] = ()):
        self._snapshot = _Snapshot(tuple(drugs), tuple(rules))

    @property
    def drugs(self) -> Tuple[Drug, ...]:
        return self._snapshot.drugs

    @property
    def rules(self) -> Tuple[SubstitutionRule, ...]:
        return self._snapshot.rules

    def find_substitutes(self, target: Drug, available_only: bool = True) -> List[SubstitutionSuggestion]:
        """
        Rank substitutes for the target drug.

        Args:
            target: Drug to replace
            available_only: Only consider candidates with stock on hand

        Returns:
            Suggestions sorted by descending confidence, one per drug ID,
            never including the target itself.

        Raises:
            InvalidInput: target is missing or lacks identifying fields
        """
        target = validate_target(target)
        snapshot = self._snapshot

        pool = [
            drug for drug in snapshot.drugs
            if drug.id != target.id and (not available_only or drug.stock_level > 0)
        ]
        results = merge_suggestions(match(target, pool, snapshot.rules) for match in MATCH_PASSES)

        logger.debug(
            "Target %s: %d candidates, %d suggestions (available_only=%s)",
            target.id, len(pool), len(results), available_only,
        )
        return results

    def get_drug_by_id(self, drug_id: str) -> Optional[Drug]:
        for drug in self._snapshot.drugs:
            if drug.id == drug_id:
                return drug
        return None

    def update_data(self, drugs: Iterable[Drug], rules: Iterable[SubstitutionRule] = ()):
        """Replace the bound catalog and rule set for subsequent calls."""
        self._snapshot = _Snapshot(tuple(drugs), tuple(rules))
        logger.info("Engine data updated: %d drugs, %d rules", len(self.drugs), len(self.rules))
