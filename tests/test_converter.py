# tests/test_converter.py

import itertools
import math
import threading

import pytest

from unit_manager.converter import UnitConverter
from unit_manager.units import (
    ConstructionError,
    ConversionResult,
    UnitDefinition,
    UnknownUnitError,
)


METRIC = [
    UnitDefinition("nano", "NANO", 1e-9),
    UnitDefinition("micro", "MICRO", 1e-6),
    UnitDefinition("milli", "MILLI", 1e-3),
    UnitDefinition("base", "", 1),
    UnitDefinition("kilo", "KILO", 1e3),
    UnitDefinition("mega", "MEGA", 1e6),
    UnitDefinition("giga", "GIGA", 1e9),
]


@pytest.fixture
def metric():
    return UnitConverter(METRIC)


# --------------------------- construction ---------------------------

def test_construction_sorts_and_picks_base():
    shuffled = [METRIC[4], METRIC[0], METRIC[6], METRIC[3], METRIC[1], METRIC[5], METRIC[2]]
    before = list(shuffled)

    conv = UnitConverter(shuffled)

    assert conv.base_unit == "base"
    assert [u.id for u in conv.units] == ["nano", "micro", "milli", "base", "kilo", "mega", "giga"]
    assert len(conv) == 7
    assert "kilo" in conv and "tera" not in conv
    # caller's list untouched
    assert shuffled == before


def test_construction_without_base_unit_fails():
    with pytest.raises(ConstructionError, match="missing base unit"):
        UnitConverter([UnitDefinition("a", "A", 2), UnitDefinition("b", "B", 3)])


def test_construction_with_two_base_units_fails():
    with pytest.raises(ConstructionError, match="Ambiguous"):
        UnitConverter([UnitDefinition("a", "A", 1), UnitDefinition("b", "B", 1.0)])


@pytest.mark.parametrize("bad", [0, -1.0, math.nan, math.inf])
def test_construction_rejects_non_positive_or_non_finite_factors(bad):
    with pytest.raises(ConstructionError):
        UnitConverter([UnitDefinition("base", "", 1), UnitDefinition("bad", "BAD", bad)])


def test_construction_rejects_duplicates_and_empty():
    with pytest.raises(ConstructionError, match="Duplicate"):
        UnitConverter([UnitDefinition("base", "", 1), UnitDefinition("base", "X", 10)])
    with pytest.raises(ConstructionError):
        UnitConverter([])


def test_construction_from_mappings_accepts_legacy_keys():
    conv = UnitConverter(
        [
            {"id": "ms", "translate_key": "MILLS", "value": 1},
            {"id": "s", "display_key": "SEC", "factor": 1000},
        ]
    )
    assert conv.base_unit == "ms"
    assert conv.get("ms").display_key == "MILLS"
    assert conv.factor("s") == 1000.0


def test_errors_are_standard_exception_kinds():
    assert issubclass(ConstructionError, ValueError)
    assert issubclass(UnknownUnitError, LookupError)


# --------------------------- convert ---------------------------

def test_convert_kilo_to_milli(metric):
    res = metric.convert(5.5, "kilo", "milli")

    assert isinstance(res, ConversionResult)
    assert res.id == "milli"
    assert res.display_key == "MILLI"
    assert res.value == 5500000
    assert res.rounded_value == 5500000
    assert res.is_base_unit is False


def test_convert_flags_base_unit(metric):
    assert metric.convert(3, "kilo", "base").is_base_unit is True


def test_convert_identity_is_exact(metric):
    for u in metric.units:
        assert metric.convert(0.1234567891, u.id, u.id).value == 0.1234567891


def test_convert_round_trip_all_pairs(metric):
    v = 123.456
    for a, b in itertools.permutations([u.id for u in metric.units], 2):
        there = metric.convert(v, a, b).value
        back = metric.convert(there, b, a).value
        assert back == pytest.approx(v, rel=1e-12)


def test_convert_unknown_units_names_both(metric):
    with pytest.raises(UnknownUnitError) as exc:
        metric.convert(1, "foo", "bar")
    assert exc.value.missing == ("foo", "bar")
    assert "foo" in str(exc.value) and "bar" in str(exc.value)

    with pytest.raises(LookupError) as exc:
        metric.convert(1, "kilo", "bar")
    assert exc.value.missing == ("bar",)


def test_rounding_is_half_to_even(metric):
    """rounded_value uses the built-in round()."""
    assert metric.convert(2.5, "base", "base", round_by=0).rounded_value == 2.0
    assert metric.convert(3.5, "base", "base", round_by=0).rounded_value == 4.0
    assert metric.convert(0.125, "base", "base", round_by=2).rounded_value == 0.12
    assert metric.convert(15.349, "base", "base", round_by=2).rounded_value == 15.35


def test_round_by_zero_gives_integral_value(metric):
    res = metric.convert(1234.56, "base", "kilo", round_by=0)
    assert res.rounded_value == 1.0
    assert float(res.rounded_value).is_integer()


def test_negative_round_by_rejected(metric):
    with pytest.raises(ValueError):
        metric.convert(1, "base", "kilo", round_by=-1)


# --------------------------- re-base ---------------------------

def test_set_base_unit_preserves_ratios(metric):
    before = {u.id: u.factor for u in metric.units}

    metric.set_base_unit("milli")

    assert metric.base_unit == "milli"
    assert metric.factor("milli") == 1
    after = {u.id: u.factor for u in metric.units}
    for a, b in itertools.permutations(before, 2):
        assert after[a] / after[b] == pytest.approx(before[a] / before[b], rel=1e-12)
    assert [u.id for u in metric.units] == ["nano", "micro", "milli", "base", "kilo", "mega", "giga"]


def test_set_base_unit_then_convert(metric):
    metric.set_base_unit("milli")

    # 1 base unit is 1000 milli-units; 1 milli-unit is 0.001 base units
    assert metric.convert(1, "base", "milli").value == pytest.approx(1000)
    assert metric.convert(1, "milli", "base").value == pytest.approx(0.001)
    assert metric.convert(1, "base", "milli").is_base_unit is True
    assert metric.convert(5.5, "kilo", "milli").value == pytest.approx(5500000)


def test_set_base_unit_unknown(metric):
    with pytest.raises(UnknownUnitError, match="unknown unit"):
        metric.set_base_unit("tera")
    assert metric.base_unit == "base"


def test_set_base_unit_to_current_base_is_noop(metric):
    before = metric.units
    metric.set_base_unit("base")
    assert metric.units == before


def test_copy_is_independent(metric):
    clone = metric.copy()
    clone.set_base_unit("kilo")

    assert clone.base_unit == "kilo"
    assert metric.base_unit == "base"
    assert metric.factor("kilo") == 1000


# --------------------------- best-fit unit ---------------------------

def test_shortened_large_value_goes_to_kilo(metric):
    res = metric.convert_to_shortened(15349)

    assert res.id == "kilo"
    assert res.display_key == "KILO"
    assert res.value == pytest.approx(15.349)
    assert res.rounded_value == 15.3


def test_shortened_small_value_goes_to_micro(metric):
    res = metric.convert_to_shortened(0.000006785)

    assert res.id == "micro"
    assert res.value == pytest.approx(6.785)
    assert res.rounded_value == 6.8


def test_shortened_one_stays_in_base(metric):
    res = metric.convert_to_shortened(1)

    assert res.id == "base"
    assert res.value == 1
    assert res.is_base_unit is True


def test_shortened_keeps_sign(metric):
    res = metric.convert_to_shortened(-15349)
    assert res.id == "kilo"
    assert res.value == pytest.approx(-15.349)
    assert res.rounded_value == -15.3


def test_shortened_extremes_clamp_to_table_ends(metric):
    assert metric.convert_to_shortened(5e12).id == "giga"
    assert metric.convert_to_shortened(5e12).value == pytest.approx(5000)

    tiny = metric.convert_to_shortened(1e-12)
    assert tiny.id == "nano"
    assert tiny.value == pytest.approx(0.001)


def test_shortened_zero_stays_in_source_unit(metric):
    """Zero never satisfies either move rule, so the source unit is kept."""
    res = metric.convert_to_shortened(0)
    assert res.id == "base"
    assert res.value == 0

    assert metric.convert_to_shortened(0, from_unit="kilo").id == "kilo"
    assert metric.find_best_unit(0, "milli") == "milli"


def test_shortened_from_other_unit(metric):
    res = metric.convert_to_shortened(15349, round_by=2, from_unit="kilo")

    assert res.id == "mega"
    assert res.value == pytest.approx(15.349)
    assert res.rounded_value == 15.35
    assert res.is_base_unit is False


def test_shortened_unknown_source(metric):
    with pytest.raises(UnknownUnitError):
        metric.convert_to_shortened(1, from_unit="tera")


def test_find_best_unit_after_rebase(metric):
    metric.set_base_unit("kilo")
    # 0.5 kilo -> 500 base
    assert metric.find_best_unit(0.5) == "base"
    assert metric.convert_to_shortened(0.5).value == pytest.approx(500)


# --------------------------- concurrency ---------------------------

def test_rebase_and_convert_from_many_threads(metric):
    errors = []
    bases = ["nano", "milli", "base", "kilo", "giga"]

    def rebase():
        for i in range(200):
            metric.set_base_unit(bases[i % len(bases)])

    def convert():
        for _ in range(200):
            v = metric.convert(5.5, "kilo", "milli").value
            if v != pytest.approx(5500000, rel=1e-9):
                errors.append(v)

    threads = [threading.Thread(target=rebase)] + [threading.Thread(target=convert) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []


# --------------------------- input hardening ---------------------------

def test_find_best_unit_ignores_sign(metric):
    assert metric.find_best_unit(-15349) == "kilo"
    assert metric.find_best_unit(-0.000006785) == metric.find_best_unit(0.000006785) == "micro"


def test_copy_keeps_current_base_and_converts(metric):
    metric.set_base_unit("milli")
    clone = metric.copy()

    assert isinstance(clone, UnitConverter)
    assert clone.base_unit == "milli"
    assert clone.units == metric.units
    assert clone.convert(5.5, "kilo", "milli").value == pytest.approx(5500000)


@pytest.mark.parametrize("bad", ["1", None, True])
def test_construction_rejects_non_numeric_factor(bad):
    with pytest.raises(ConstructionError, match="factors must be finite"):
        UnitConverter([UnitDefinition("base", "", 1), UnitDefinition("odd", "ODD", bad)])
