"""
Tests for waypoint profiles: depth/gas lookup, validation, statistics and
profile generation.
"""

import math

import pytest

from decomodel.errors import InvalidProfileError
from decomodel.gases import AIR, Gas
from decomodel.profile import (
    ProfileGenerator,
    Waypoint,
    calculate_rates,
    check_profile,
    coerce_waypoints,
    create_default_profile,
    depth_at,
    gas_at,
    gas_switch_events,
    generate_simple_profile,
    get_dive_stats,
    resolve_gas_schedule,
    validate_profile,
    waypoint_index,
)

EAN50 = Gas(id="ean50", name="EAN50", o2=0.50, n2=0.50)
O2 = Gas(id="o2", name="Oxygen", o2=1.0, n2=0.0)


def wps(*points):
    return [Waypoint.coerce(p) for p in points]


class TestWaypoint:
    """Test waypoint coercion and serialization."""

    def test_from_tuple(self):
        """A (time, depth) tuple becomes a waypoint without gas."""
        wp = Waypoint.coerce((2, 40))
        assert wp == Waypoint(2.0, 40.0)
        assert wp.gas_id is None

    def test_from_tuple_with_gas(self):
        """A third tuple element is the gas id."""
        assert Waypoint.coerce((24, 21, "ean50")).gas_id == "ean50"

    def test_from_mapping(self):
        """Both gasId and gas_id keys are accepted."""
        wp = Waypoint.coerce({"time": 24, "depth": 21, "gasId": "ean50"})
        assert wp == Waypoint(24.0, 21.0, "ean50")
        assert Waypoint.coerce({"time": 1, "depth": 2, "gas_id": "o2"}).gas_id == "o2"

    def test_empty_gas_id_ignored(self):
        """An empty gas id means no switch."""
        assert Waypoint.coerce({"time": 1, "depth": 2, "gasId": ""}).gas_id is None

    def test_invalid(self):
        """Strings are not waypoints."""
        with pytest.raises(TypeError):
            Waypoint.coerce("10m")

    def test_to_dict(self):
        """gasId is only written when set."""
        assert Waypoint(1, 2).to_dict() == {"time": 1, "depth": 2}
        assert Waypoint(1, 2, "o2").to_dict() == {"time": 1, "depth": 2, "gasId": "o2"}

    def test_coerce_none(self):
        """None becomes an empty profile."""
        assert coerce_waypoints(None) == []


class TestCheckProfile:
    def test_valid(self):
        """The default profile passes."""
        check_profile(create_default_profile())

    def test_too_short(self):
        """A single waypoint is rejected."""
        with pytest.raises(InvalidProfileError, match="at least 2"):
            check_profile(wps((0, 0)))

    def test_equal_times(self):
        """Equal consecutive times are rejected."""
        with pytest.raises(InvalidProfileError, match="Waypoint 3"):
            check_profile(wps((0, 0), (2, 20), (2, 30)))

    def test_negative_time(self):
        """Negative times are rejected."""
        with pytest.raises(InvalidProfileError, match="negative"):
            check_profile(wps((-1, 0), (2, 20)))


class TestDepthAt:
    """Test depth interpolation."""

    PROFILE = wps((0, 0), (2, 40), (22, 40), (26, 9), (42, 0))

    def test_at_waypoints(self):
        """Depth at a waypoint is the waypoint depth."""
        assert depth_at(self.PROFILE, 0) == 0
        assert depth_at(self.PROFILE, 2) == 40
        assert depth_at(self.PROFILE, 26) == 9

    def test_interpolated(self):
        """Depth is linear between waypoints."""
        assert depth_at(self.PROFILE, 1) == pytest.approx(20.0)
        assert depth_at(self.PROFILE, 24) == pytest.approx(24.5)

    def test_surface_after_last_waypoint(self):
        """After the last waypoint the diver is at the surface."""
        assert depth_at(self.PROFILE, 50) == 0

    def test_last_waypoint_not_at_surface(self):
        """From the last waypoint's time the diver is at the surface."""
        profile = wps((0, 0), (2, 20), (10, 20))
        assert depth_at(profile, 10) == 0
        assert depth_at(profile, 10, from_left=True) == 20

    def test_from_left_at_breakpoint(self):
        """Left limit at a waypoint is the depth the segment reaches."""
        assert depth_at(self.PROFILE, 22, from_left=True) == pytest.approx(40)
        assert depth_at(self.PROFILE, 1, from_left=True) == pytest.approx(20)

    def test_before_start(self):
        """Before the first waypoint its depth applies."""
        profile = wps((1, 5), (3, 10))
        assert depth_at(profile, 0.5) == 5

    def test_duplicate_times_no_division(self):
        """Equal waypoint times do not divide by zero."""
        profile = wps((0, 0), (2, 20), (2, 30), (5, 30))
        assert depth_at(profile, 2) == 30
        assert depth_at(profile, 2, from_left=True) == 20

    def test_empty(self):
        """An empty profile is at the surface."""
        assert depth_at([], 3) == 0.0

    def test_waypoint_index(self):
        """Index lookup with and without left limits."""
        times = [0, 2, 22]
        assert waypoint_index(times, 2) == 1
        assert waypoint_index(times, 2, from_left=True) == 0
        assert waypoint_index(times, -1) == -1


class TestGasLookup:
    """Test gas schedule resolution."""

    PROFILE = wps((0, 0), (2, 40), (22, 40), (24, 21, "ean50"), (30, 21), (31, 6, "o2"), (40, 6), (41, 0))
    GASES = [AIR, EAN50, O2]

    def test_schedule(self):
        """Gas ids are inherited forward."""
        schedule = resolve_gas_schedule(self.PROFILE, self.GASES)
        assert [g.id for g in schedule] == ["air", "air", "air", "ean50", "ean50", "o2", "o2", "o2"]

    def test_gas_at(self):
        """Switch takes effect at the waypoint, not before."""
        assert gas_at(self.PROFILE, self.GASES, 10) is AIR
        assert gas_at(self.PROFILE, self.GASES, 24) is EAN50
        assert gas_at(self.PROFILE, self.GASES, 24, from_left=True) is AIR
        assert gas_at(self.PROFILE, self.GASES, 35) is O2

    def test_gas_after_dive(self):
        """Last gas stays in effect during the surface interval."""
        assert gas_at(self.PROFILE, self.GASES, 100) is O2

    def test_no_waypoints(self):
        """Without waypoints the first gas, or air, is used."""
        assert gas_at([], [EAN50], 5) is EAN50
        assert gas_at([], [], 5) is AIR

    def test_unknown_gas_logged_once(self, caplog):
        """An unknown id falls back to the first gas and warns once."""
        profile = wps((0, 0), (2, 20, "tx"), (5, 20, "tx"), (8, 0))
        with caplog.at_level("WARNING", logger="decomodel.profile"):
            schedule = resolve_gas_schedule(profile, [AIR])
        assert all(g is AIR for g in schedule)
        assert caplog.text.count("Unknown gas id 'tx'") == 1

    def test_switch_events(self):
        """Both switches are reported in order."""
        events = gas_switch_events(self.PROFILE, self.GASES)
        assert [(e.time, e.from_gas.id, e.to_gas.id) for e in events] == [
            (24, "air", "ean50"),
            (31, "ean50", "o2"),
        ]

    def test_no_switch_events_single_gas(self):
        """A single gas never switches."""
        assert gas_switch_events(self.PROFILE, [AIR]) == []


class TestValidateProfile:
    """Test editor-facing validation."""

    def test_default_profile_valid(self):
        """The default profile has no errors or warnings."""
        result = validate_profile(create_default_profile())
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_too_short(self):
        """A single waypoint is an error."""
        result = validate_profile([(0, 0)])
        assert not result.valid
        assert "Profile must have at least 2 waypoints" in result.errors

    def test_not_a_sequence(self):
        """Strings and None are not profiles."""
        assert not validate_profile("0,0;1,10").valid
        assert not validate_profile(None).valid

    def test_collects_all_errors(self):
        """All errors are reported, not just the first."""
        result = validate_profile([(1, 0), (0, 10), (2, -5)])
        assert "First waypoint must be at time 0" in result.errors
        assert "Waypoint 2: Time must be greater than previous waypoint" in result.errors
        assert "Waypoint 3: Depth cannot be negative" in result.errors

    def test_invalid_values(self):
        """Unparseable and NaN values are errors."""
        result = validate_profile([{"time": 0, "depth": 0}, {"time": "x", "depth": 10}])
        assert "Waypoint 2: Invalid time or depth value" in result.errors
        result = validate_profile([(0, 0), (math.nan, 10)])
        assert "Waypoint 2: Invalid time or depth value" in result.errors

    def test_warnings_do_not_invalidate(self):
        """Depth and surface warnings leave the profile valid."""
        result = validate_profile([(0, 3), (2, 65), (10, 10)])
        assert result.valid
        assert "Waypoint 2 depth (65m) exceeds recreational limits" in result.warnings
        assert "First waypoint should be at surface (0m)" in result.warnings
        assert "Dive should end at surface (0m)" in result.warnings


class TestStats:
    """Test rates and summary statistics."""

    def test_rates(self):
        """Segment kinds and speeds of the default profile."""
        rates = calculate_rates(create_default_profile())
        assert [r.kind for r in rates] == ["descent", "level", "ascent", "level", "ascent"]
        assert rates[0].rate == pytest.approx(15.0)
        assert rates[2].rate == pytest.approx(25.0)

    def test_dive_stats(self):
        """Summary of the default profile."""
        stats = get_dive_stats(create_default_profile())
        assert stats.max_depth == 30
        assert stats.total_time == 30
        assert stats.max_descent_rate == pytest.approx(15.0)
        assert stats.max_ascent_rate == pytest.approx(25.0)
        assert stats.waypoint_count == 6

    def test_stats_need_two_waypoints(self):
        """Fewer than two waypoints have no statistics."""
        assert get_dive_stats([(0, 0)]) is None


class TestProfileGenerator:
    """Test generated profiles."""

    def test_simple_profile(self):
        """30 m / 25 min: 2 min descent, ascent at 10 m/min, 3 min stop at 5 m."""
        profile = generate_simple_profile(30, 25)
        assert [(wp.time, wp.depth) for wp in profile] == [
            (0, 0), (2, 30), (25, 30), (28, 5), (31, 5), (32, 0),
        ]

    def test_simple_profile_is_valid(self):
        """Generated profiles pass validation."""
        assert validate_profile(generate_simple_profile(18, 40)).valid

    def test_shallow_dive(self):
        """Stop depth is capped at the dive depth."""
        profile = ProfileGenerator().generate_simple(4, 10)
        assert [(wp.time, wp.depth) for wp in profile] == [
            (0, 0), (1, 4), (10, 4), (13, 4), (14, 0),
        ]

    def test_bottom_time_shorter_than_descent(self):
        """Bottom time shorter than the descent still gives a valid profile."""
        profile = ProfileGenerator().generate_simple(40, 1)
        check_profile(profile)
        assert profile[1] == Waypoint(2, 40)

    def test_rejects_zero_depth(self):
        """Depth must be positive."""
        with pytest.raises(ValueError, match="max_depth"):
            generate_simple_profile(0, 20)

    def test_rejects_bad_rates(self):
        """Rates must be positive."""
        with pytest.raises(ValueError):
            ProfileGenerator(descent_rate=0)

    def test_multilevel(self):
        """Levels in order, then a direct ascent."""
        profile = ProfileGenerator().generate_multilevel([(30, 10), (18, 10)])
        assert [(wp.time, wp.depth) for wp in profile] == [
            (0, 0), (2, 30), (12, 30), (14, 18), (24, 18), (26, 0),
        ]
