"""
Loads drug catalogs and substitution rules from JSON files on disk.
"""
import json
import logging
from pathlib import Path
from typing import List, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import CatalogLoadError
from .models import Drug, SubstitutionRule

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _load_records(path: Union[str, Path], model: Type[RecordT]) -> List[RecordT]:
    path = Path(path)
    if not path.exists():
        raise CatalogLoadError(f"Data file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogLoadError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(raw, list):
        raise CatalogLoadError(f"{path} must contain a JSON array")

    try:
        return [model.model_validate(item) for item in raw]
    except ValidationError as e:
        raise CatalogLoadError(f"Invalid {model.__name__} record in {path}: {e}") from e


def load_drugs(path: Union[str, Path]) -> List[Drug]:
    drugs = _load_records(path, Drug)
    logger.info("Loaded %d drugs from %s", len(drugs), path)
    return drugs


def load_rules(path: Union[str, Path]) -> List[SubstitutionRule]:
    rules = _load_records(path, SubstitutionRule)
    logger.info("Loaded %d substitution rules from %s", len(rules), path)
    return rules
