# unit_manager/converter.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from unit_manager.units import (
    ConstructionError,
    ConversionResult,
    UnitDefinition,
    UnknownUnitError,
)

log = logging.getLogger(__name__)

UnitLike = Union[UnitDefinition, Mapping[str, Any]]


@dataclass(frozen=True)
class _UnitTable:
    """Sorted units + id index + base id. Always replaced as a whole."""
    units: Tuple[UnitDefinition, ...]
    index: Dict[str, UnitDefinition]
    base: str


def _coerce(item: UnitLike) -> UnitDefinition:
    if isinstance(item, UnitDefinition):
        return item
    if isinstance(item, Mapping):
        return UnitDefinition.from_dict(item)
    raise ConstructionError(f"Expected UnitDefinition or mapping, got {type(item).__name__}")


def _build_table(units: Iterable[UnitDefinition], base: str) -> _UnitTable:
    ordered = tuple(sorted(units, key=lambda u: u.factor))
    return _UnitTable(units=ordered, index={u.id: u for u in ordered}, base=base)


class UnitConverter:
    """
    Converts values between linearly related units.

    Every unit carries a factor relative to the current base unit (factor 1):
        value_in_base = value_in_unit * factor

    The table is sorted ascending by factor. Re-basing rewrites all factors
    relative to the new base and swaps the whole table in one step, so
    concurrent readers see either the old or the new table.
    """

    def __init__(self, definitions: Iterable[UnitLike]):
        units = [_coerce(d) for d in definitions]
        if not units:
            raise ConstructionError("Unit table is empty.")

        seen = set()
        for u in units:
            if u.id in seen:
                raise ConstructionError(f"Duplicate unit id: {u.id}")
            seen.add(u.id)
            if not u.is_valid_factor:
                raise ConstructionError(
                    f"Unit '{u.id}' has factor {u.factor!r}; factors must be finite and > 0."
                )

        ordered = sorted(units, key=lambda u: u.factor)
        bases = [u.id for u in ordered if u.factor == 1]
        if not bases:
            raise ConstructionError("missing base unit")
        if len(bases) > 1:
            raise ConstructionError(f"Ambiguous base unit; factor 1 on: {', '.join(bases)}")

        self._lock = threading.RLock()
        self._table = _build_table(ordered, bases[0])

    # ---- introspection ----
    @property
    def base_unit(self) -> str:
        return self._table.base

    @property
    def units(self) -> Tuple[UnitDefinition, ...]:
        return self._table.units

    def get(self, unit_id: str) -> UnitDefinition:
        try:
            return self._table.index[unit_id]
        except KeyError as e:
            raise UnknownUnitError(f"unknown unit '{unit_id}'", missing=(unit_id,)) from e

    def factor(self, unit_id: str) -> float:
        return self.get(unit_id).factor

    def copy(self) -> "UnitConverter":
        return self._from_table(self._snapshot())

    @classmethod
    def _from_table(cls, table: _UnitTable) -> "UnitConverter":
        # _UnitTable is never mutated, only replaced
        conv = cls.__new__(cls)
        conv._lock = threading.RLock()
        conv._table = table
        return conv

    def __contains__(self, unit_id: object) -> bool:
        return unit_id in self._table.index

    def __len__(self) -> int:
        return len(self._table.units)

    def __iter__(self) -> Iterator[UnitDefinition]:
        return iter(self._table.units)

    def __repr__(self) -> str:
        table = self._table
        ids = ", ".join(u.id for u in table.units)
        return f"UnitConverter(base={table.base!r}, units=[{ids}])"

    # ---- re-basing ----
    def set_base_unit(self, unit_id: str) -> None:
        """Make ``unit_id`` the factor-1 unit and rescale every other factor."""
        with self._lock:
            table = self._table
            target = table.index.get(unit_id)
            if target is None:
                raise UnknownUnitError(f"unknown unit '{unit_id}'", missing=(unit_id,))

            modifier = 1 / target.factor
            rescaled = [
                replace(u, factor=1.0 if u.id == unit_id else u.factor * modifier)
                for u in table.units
            ]
            self._table = _build_table(rescaled, unit_id)

        log.debug("Base unit changed %s -> %s (modifier=%r)", table.base, unit_id, modifier)

    # ---- conversion ----
    def convert(
        self,
        value: float,
        from_unit: str,
        to_unit: str,
        round_by: int = 1,
    ) -> ConversionResult:
        """
        Convert ``value`` expressed in ``from_unit`` into ``to_unit``.

        ``rounded_value`` uses the built-in ``round`` (half-to-even on the
        binary value), with ``round_by`` decimal places.
        """
        return self._convert(self._snapshot(), value, from_unit, to_unit, round_by)

    def convert_to_shortened(
        self,
        value: float,
        round_by: int = 1,
        from_unit: Optional[str] = None,
    ) -> ConversionResult:
        """Convert ``value`` into the unit that reads best (see find_best_unit)."""
        table = self._snapshot()
        source = table.base if from_unit is None else from_unit
        if source not in table.index:
            raise UnknownUnitError(f"unknown unit '{source}'", missing=(source,))

        best = self._find_best(table, abs(value), source)
        return self._convert(table, value, source, best, round_by)

    def find_best_unit(self, magnitude: float, from_unit: Optional[str] = None) -> str:
        """
        Return the id of the most readable unit for ``magnitude`` (given in ``from_unit``).

        Walks the units smallest to largest and moves to a candidate when it keeps the
        value >= 1 while shrinking it, or when the current value is below 1 and the
        candidate grows it. The sign of ``magnitude`` is ignored. Zero never satisfies
        either rule and stays in ``from_unit``.
        """
        table = self._snapshot()
        source = table.base if from_unit is None else from_unit
        if source not in table.index:
            raise UnknownUnitError(f"unknown unit '{source}'", missing=(source,))
        return self._find_best(table, abs(magnitude), source)

    # ---- internals ----
    def _snapshot(self) -> _UnitTable:
        with self._lock:
            return self._table

    @staticmethod
    def _convert_value(table: _UnitTable, value: float, from_unit: str, to_unit: str) -> float:
        if from_unit == to_unit:
            return value
        return value * (table.index[from_unit].factor / table.index[to_unit].factor)

    def _convert(
        self,
        table: _UnitTable,
        value: float,
        from_unit: str,
        to_unit: str,
        round_by: int,
    ) -> ConversionResult:
        missing = [u for u in (from_unit, to_unit) if u not in table.index]
        if missing:
            raise UnknownUnitError(
                f"Provided from -> to identifiers are missing. Provided: {from_unit} -> {to_unit}",
                missing=missing,
            )
        if round_by < 0:
            raise ValueError(f"round_by must be >= 0, got {round_by}")

        target = table.index[to_unit]
        result = self._convert_value(table, value, from_unit, to_unit)
        return ConversionResult(
            id=target.id,
            value=result,
            display_key=target.display_key,
            rounded_value=round(result, round_by),
            is_base_unit=target.id == table.base,
        )

    def _find_best(self, table: _UnitTable, magnitude: float, from_unit: str) -> str:
        best = from_unit
        for candidate in table.units:
            current_value = self._convert_value(table, magnitude, from_unit, best)
            candidate_value = self._convert_value(table, current_value, best, candidate.id)
            if (candidate_value < current_value and candidate_value >= 1) or (
                candidate_value > current_value and current_value < 1
            ):
                best = candidate.id

        log.debug("Best unit for %r %s: %s", magnitude, from_unit, best)
        return best
