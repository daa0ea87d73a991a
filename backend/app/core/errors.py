from __future__ import annotations


class ModelValidationError(ValueError):
    """Règle métier violée au moment de l'écriture (équivalent d'un hook pre-save)."""
