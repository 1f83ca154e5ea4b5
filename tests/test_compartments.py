"""
Tests for ZH-L16 compartment tables and active variant switching.
"""

import math

import numpy as np
import pytest

from decomodel.compartments import (
    COMPARTMENTS,
    CompartmentTable,
    NUM_COMPARTMENTS,
    ZH_L16_N2_A,
    ZH_L16_N2_B,
    ZH_L16_N2_HALFTIMES,
    build_table,
    get_active_table,
    get_compartment_category,
    get_compartments,
    get_rate_constant,
    get_table,
    get_variant,
    set_variant,
)


@pytest.fixture(autouse=True)
def reset_variant():
    set_variant("A")
    yield
    set_variant("A")


class TestConstants:
    """Test the published coefficient tables."""

    def test_sixteen_compartments(self):
        """Every table has 16 entries."""
        assert len(ZH_L16_N2_HALFTIMES) == NUM_COMPARTMENTS
        assert len(ZH_L16_N2_B) == NUM_COMPARTMENTS
        for variant, a_values in ZH_L16_N2_A.items():
            assert len(a_values) == NUM_COMPARTMENTS, variant

    def test_first_and_last_compartment(self):
        """TC1 uses the 5 min half-time; TC16 is the 635 min fat compartment."""
        assert ZH_L16_N2_HALFTIMES[0] == 5.0
        assert ZH_L16_N2_B[0] == 0.5578
        assert ZH_L16_N2_HALFTIMES[-1] == 635.0
        assert ZH_L16_N2_B[-1] == 0.9653

    def test_variants_share_fast_compartments(self):
        """Variants only differ in a-coefficients of the middle compartments."""
        for i in range(4):
            assert ZH_L16_N2_A["A"][i] == ZH_L16_N2_A["C"][i]
        assert ZH_L16_N2_A["A"][12] == 0.2971
        assert ZH_L16_N2_A["B"][12] == 0.2850
        assert ZH_L16_N2_A["C"][4] == 0.6200

    def test_c_is_most_conservative(self):
        """ZH-L16C a-coefficients never exceed A or B."""
        for i in range(NUM_COMPARTMENTS):
            assert ZH_L16_N2_A["C"][i] <= ZH_L16_N2_A["B"][i] <= ZH_L16_N2_A["A"][i]


class TestRateConstant:
    def test_rate_constant(self):
        """k = ln(2) / half_time."""
        assert get_rate_constant(5.0) == pytest.approx(math.log(2) / 5.0)
        assert get_rate_constant(635.0) == pytest.approx(0.0010916, rel=1e-4)

    def test_categories(self):
        """Half-times map onto the four speed categories."""
        assert get_compartment_category(5.0) == "Fast"
        assert get_compartment_category(27.0) == "Medium"
        assert get_compartment_category(109.0) == "Medium-Slow"
        assert get_compartment_category(635.0) == "Slow"


class TestCompartmentTable:
    """Test table construction and its derived arrays."""

    def test_default_compartments(self):
        """COMPARTMENTS is the ZH-L16A table in half-time order."""
        assert len(COMPARTMENTS) == 16
        assert [c.id for c in COMPARTMENTS] == list(range(1, 17))
        assert COMPARTMENTS[0].half_time == 5.0
        assert COMPARTMENTS[0].a_n2 == 1.1696
        assert COMPARTMENTS[12].a_n2 == ZH_L16_N2_A["A"][12]

    def test_compartment_rate_constant(self):
        """Compartment exposes its rate constant, category and label."""
        comp = COMPARTMENTS[0]
        assert comp.k == pytest.approx(math.log(2) / 5.0)
        assert comp.category == "Fast"
        assert comp.label.startswith("1 - ")

    def test_arrays_match_compartments(self):
        """Vector views mirror the compartment fields."""
        table = get_table("C")
        np.testing.assert_allclose(table.half_times, ZH_L16_N2_HALFTIMES)
        np.testing.assert_allclose(table.a, ZH_L16_N2_A["C"])
        np.testing.assert_allclose(table.b, ZH_L16_N2_B)
        np.testing.assert_allclose(table.k, np.log(2) / np.array(ZH_L16_N2_HALFTIMES))

    def test_arrays_read_only(self):
        """Derived arrays cannot be modified in place."""
        table = get_table("A")
        with pytest.raises(ValueError):
            table.a[0] = 2.0

    def test_table_is_frozen(self):
        """Tables cannot be mutated after construction."""
        table = get_table("A")
        with pytest.raises(AttributeError):
            table.variant = "B"

    def test_by_id(self):
        """Compartments are looked up by 1-based id."""
        table = get_table("B")
        assert table.by_id(13).a_n2 == 0.2850
        with pytest.raises(KeyError):
            table.by_id(17)

    def test_rejects_unordered_half_times(self):
        """Tables must be ordered by increasing half-time."""
        comps = list(get_table("A").compartments)
        comps[0], comps[1] = comps[1], comps[0]
        with pytest.raises(ValueError, match="half-times"):
            CompartmentTable(variant="A", compartments=tuple(comps))

    def test_unknown_variant_falls_back_to_c(self, caplog):
        """Unknown variants use ZH-L16C and log a warning."""
        with caplog.at_level("WARNING", logger="decomodel.compartments"):
            table = build_table("Z")
        assert table.variant == "C"
        np.testing.assert_allclose(table.a, ZH_L16_N2_A["C"])
        assert "Unknown compartment variant" in caplog.text

    def test_lowercase_variant(self):
        """Variant names are case-insensitive."""
        assert get_table("b").variant == "B"


class TestActiveVariant:
    """Test process-wide variant switching."""

    def test_default_variant(self):
        """ZH-L16A is active at start-up."""
        assert get_variant() == "A"
        assert get_compartments() == COMPARTMENTS

    def test_set_variant_swaps_table(self):
        """set_variant makes the new table the active one."""
        table = set_variant("C")
        assert get_variant() == "C"
        assert get_active_table() is table
        assert get_compartments()[4].a_n2 == 0.6200

    def test_held_snapshot_unchanged(self):
        """A table held before a switch keeps its coefficients."""
        before = get_active_table()
        set_variant("C")
        assert before.variant == "A"
        assert before.a[4] == 0.6667
        assert get_active_table().a[4] == 0.6200

    def test_switch_logged(self, caplog):
        """A variant change is logged at INFO."""
        with caplog.at_level("INFO", logger="decomodel.compartments"):
            set_variant("B")
        assert "ZH-L16A -> ZH-L16B" in caplog.text

    def test_unknown_variant_activates_c(self):
        """An unknown variant activates ZH-L16C."""
        set_variant("X")
        assert get_variant() == "C"
