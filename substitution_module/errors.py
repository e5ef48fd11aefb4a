"""Exceptions raised by the substitution module."""


class SubstitutionError(Exception):
    """Base class for substitution module errors."""


class InvalidInput(SubstitutionError, ValueError):
    """Target drug is missing or lacks its identifying fields."""


class DrugNotFound(SubstitutionError, LookupError):
    """No catalog entry carries the requested drug ID."""

    def __init__(self, drug_id: str):
        super().__init__(f"Drug not found: {drug_id}")
        self.drug_id = drug_id


class CatalogLoadError(SubstitutionError):
    """Catalog or rule file could not be read or validated."""
