# unit_manager/units.py
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, asdict
from typing import Any, Dict, Mapping, Sequence, Tuple


class ConstructionError(ValueError):
    """Raised when a unit table cannot be turned into a converter."""


class UnknownUnitError(LookupError):
    """Raised when a unit id is not part of the converter's table."""

    def __init__(self, message: str, missing: Sequence[str] = ()):
        super().__init__(message)
        self.missing: Tuple[str, ...] = tuple(missing)


@dataclass(frozen=True)
class UnitDefinition:
    id: str
    display_key: str
    factor: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UnitDefinition":
        """
        Build a definition from a plain mapping.
        Accepts the legacy spelling ``translate_key`` / ``value`` as well.
        """
        try:
            uid = data["id"]
        except KeyError as e:
            raise ConstructionError(f"Unit definition without 'id': {dict(data)!r}") from e

        display_key = data.get("display_key", data.get("translate_key", ""))
        raw_factor = data.get("factor", data.get("value"))
        if raw_factor is None:
            raise ConstructionError(f"Unit '{uid}' has no factor.")
        try:
            factor = float(raw_factor)
        except (TypeError, ValueError) as e:
            raise ConstructionError(f"Unit '{uid}' has a non-numeric factor: {raw_factor!r}") from e

        return cls(id=str(uid), display_key=str(display_key or ""), factor=factor)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def is_valid_factor(self) -> bool:
        if isinstance(self.factor, bool) or not isinstance(self.factor, numbers.Real):
            return False
        return math.isfinite(self.factor) and self.factor > 0


@dataclass(frozen=True)
class ConversionResult:
    id: str
    value: float
    display_key: str
    rounded_value: float
    is_base_unit: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
