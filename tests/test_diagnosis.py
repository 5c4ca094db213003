"""
Feeder Diagnostics - Diagnosis Report Tests
"""

import math
from decimal import Decimal

import pytest

from feeder_diagnostics.loading import DiagnosticKind, EngineSettings, FeederLegReading
from feeder_diagnostics.loading import constants as c
from feeder_diagnostics.loading.diagnosis import diagnose, diagnose_structured, format_amps

CLOSING = (
    ["", c.BALANCING_STEPS_HEADER, *c.BALANCING_STEPS, "", c.HAZARD_HEADER, *c.HAZARD_BULLETS]
)


def _legs(*rows):
    return [FeederLegReading.from_values(*row) for row in rows]


class TestFormatting:
    """One-decimal amount formatting"""

    @pytest.mark.parametrize(
        "value, text",
        [
            (250, "250.0"),
            (36.56, "36.6"),
            (0.25, "0.3"),
            (1.25, "1.3"),
            (0.04, "0.0"),
            (-0.25, "-0.3"),
            (19.833333333333332, "19.8"),
        ],
    )
    def test_format_amps(self, value, text):
        assert format_amps(value) == text


class TestNoFindings:
    """Empty and healthy inputs"""

    @pytest.mark.parametrize("rating", [None, 0, 200, "315"])
    def test_empty_leg_list(self, rating):
        assert diagnose(rating, []) == [c.ADD_READINGS_PROMPT]

    def test_empty_leg_list_structured(self):
        report = diagnose_structured(200, [])
        assert report.lines[0].kind is DiagnosticKind.PROMPT
        assert report.problem_leg_index is None
        assert not report.has_issues

    def test_balanced_leg(self, balanced_leg):
        assert diagnose(200, [balanced_leg]) == [c.NO_ISSUES_MESSAGE]

    def test_all_zero_legs(self):
        report = diagnose_structured(100, _legs((0, 0, 0, 0), (0, 0, 0, 0)))
        assert report.messages == [c.NO_ISSUES_MESSAGE]
        assert report.lines[0].kind is DiagnosticKind.SUCCESS
        assert report.problem_leg_index == 0


class TestRedHeavyLeg:
    """Overloaded red phase with 80% imbalance on a 200 kVA transformer"""

    def test_full_report(self, red_heavy_leg):
        expected = [
            "⚠️ OVERLOAD: Red phase on Leg 1 is at 93.7% capacity (250.0A).",
            "⚖️ IMBALANCE: Leg 1 has 80.0% phase imbalance.",
            "",
            "📊 CURRENT PHASE DISTRIBUTION ON LEG 1:",
            "   Red Phase: 250.0A",
            "   Yellow Phase: 50.0A",
            "   Blue Phase: 50.0A",
            "",
            "🚨 CRITICAL IMBALANCE DETECTED ON LEG 1!",
            "   • Imbalance: 80.0% (Severe - requires immediate attention)",
            "   • This can cause transformer overheating and equipment damage",
            "   • Neutral current will be excessive due to poor phase balance",
            "",
            "🔄 SPECIFIC ACTIONS FOR LEG 1:",
            "   • Move 36.6A from Red phase to Yellow or Blue phase",
            *CLOSING,
        ]
        assert diagnose(200, [red_heavy_leg]) == expected

    def test_line_kinds(self, red_heavy_leg):
        report = diagnose_structured(200, [red_heavy_leg])
        kinds = [line.kind for line in report.lines]
        assert kinds[:4] == [
            DiagnosticKind.OVERLOAD,
            DiagnosticKind.IMBALANCE,
            DiagnosticKind.BLANK,
            DiagnosticKind.INFO,
        ]
        assert DiagnosticKind.CRITICAL in kinds
        assert DiagnosticKind.ACTION in kinds
        assert kinds[-1] is DiagnosticKind.BULLET
        assert report.lines[0].leg == 1
        assert report.problem_leg_index == 0
        assert report.has_issues

    def test_idempotent(self, red_heavy_leg):
        assert diagnose(200, [red_heavy_leg]) == diagnose(200, [red_heavy_leg])

    def test_structured_dicts(self, red_heavy_leg):
        first = diagnose_structured(200, [red_heavy_leg]).lines[0].to_dict()
        assert first["kind"] == "overload"
        assert first["leg"] == 1


class TestCannotBalance:
    """Excess above threshold exceeds spare capacity"""

    def test_reduce_total_load(self):
        lines = diagnose(100, _legs((200, 200, 100, 0)))
        assert lines[:3] == [
            "⚠️ OVERLOAD: Red phase on Leg 1 is at 149.9% capacity (200.0A).",
            "⚠️ OVERLOAD: Yellow phase on Leg 1 is at 149.9% capacity (200.0A).",
            "⚖️ IMBALANCE: Leg 1 has 50.0% phase imbalance.",
        ]
        start = lines.index("🔄 SPECIFIC ACTIONS FOR LEG 1:")
        assert lines[start + 1:start + 7] == [
            "   ⚠️ CRITICAL: Cannot balance with current capacity!",
            "   • Total load: 500.0A (needs 320.2A max)",
            "   • Reduce total load by 179.8A",
            "   • Target balanced load: ~166.7A per phase",
            "   • Reduce Red phase by 33.3A",
            "   • Reduce Yellow phase by 33.3A",
        ]
        assert lines[start + 7:] == CLOSING


class TestBalancingActions:
    """Imbalanced legs without overload"""

    def _actions(self, lines, leg=1):
        start = lines.index(f"🔄 BALANCING ACTIONS FOR LEG {leg}:")
        end = lines.index(c.BALANCING_STEPS_HEADER) - 1
        return lines[start + 1:end]

    def test_two_targets_split(self):
        lines = diagnose(1000, _legs((100, 41, 40, 0)))
        assert self._actions(lines) == [
            "   • Move 19.8A from Red phase to Yellow phase",
            "   • Move 19.9A from Red phase to Blue phase",
        ]

    def test_single_target(self):
        lines = diagnose(1000, _legs((100, 100, 40, 0)))
        assert self._actions(lines) == [
            "   • Move 20.0A from Red phase to Blue phase",
            "   • Move 20.0A from Yellow phase to Blue phase",
        ]

    def test_small_excess_ignored(self):
        lines = diagnose(1000, _legs((10, 6, 6, 0)))
        assert "🔄 BALANCING ACTIONS FOR LEG 1:" in lines
        assert self._actions(lines) == []

    def test_without_rating(self):
        # No rating: threshold 0, every loaded phase is an overload
        lines = diagnose(None, _legs((100, 50, 50, 30)))
        assert lines[:4] == [
            "⚠️ OVERLOAD: Red phase on Leg 1 is at Infinity% capacity (100.0A).",
            "⚠️ OVERLOAD: Yellow phase on Leg 1 is at Infinity% capacity (50.0A).",
            "⚠️ OVERLOAD: Blue phase on Leg 1 is at Infinity% capacity (50.0A).",
            "⚖️ IMBALANCE: Leg 1 has 50.0% phase imbalance.",
        ]
        assert not any("HIGH NEUTRAL" in line for line in lines)
        assert self._actions(lines) == [
            "   • Move 16.7A from Red phase to Yellow phase",
            "   • Move 16.6A from Red phase to Blue phase",
        ]

    def test_legs_in_ascending_order(self):
        lines = diagnose(1000, _legs((100, 100, 100, 0), (10, 100, 100, 0), (100, 10, 10, 0)))
        headers = [line for line in lines if line.startswith("📊")]
        assert headers == [
            "📊 CURRENT PHASE DISTRIBUTION ON LEG 2:",
            "📊 CURRENT PHASE DISTRIBUTION ON LEG 3:",
        ]


class TestImbalanceFinding:
    """Worst leg imbalance line"""

    def test_boundary_at_thirty(self):
        lines = diagnose(1000, _legs((100, 70, 70, 0)))
        assert lines[0] == "⚖️ IMBALANCE: Leg 1 has 30.0% phase imbalance."

    def test_below_thirty(self):
        assert diagnose(1000, _legs((100, 71, 71, 0))) == [c.NO_ISSUES_MESSAGE]

    def test_tie_goes_to_first_leg(self):
        report = diagnose_structured(1000, _legs((100, 50, 50, 0), (200, 100, 100, 0)))
        assert report.problem_leg_index == 0
        imbalance = [l for l in report.lines if l.kind is DiagnosticKind.IMBALANCE]
        assert [l.text for l in imbalance] == ["⚖️ IMBALANCE: Leg 1 has 50.0% phase imbalance."]

    def test_worst_leg_reported_once(self):
        report = diagnose_structured(1000, _legs((100, 60, 60, 0), (100, 10, 10, 0)))
        assert report.problem_leg_index == 1
        imbalance = [l for l in report.lines if l.kind is DiagnosticKind.IMBALANCE]
        assert len(imbalance) == 1
        assert imbalance[0].leg == 2


class TestHighNeutral:
    """Per-leg neutral against its share of rated neutral"""

    def test_share_of_rated_neutral(self):
        # 10% of 133.4 A split across two legs is 6.67 A each
        lines = diagnose(100, _legs((10, 10, 10, 7), (10, 10, 10, 5)))
        assert lines[0] == "🔌 HIGH NEUTRAL: Leg 1 neutral current is 7.0A (exceeds safe limit)."
        assert not any("Leg 2 neutral" in line for line in lines)
        assert not any(line.startswith("📊") for line in lines)
        assert lines[1:] == CLOSING

    def test_no_check_without_rating(self):
        lines = diagnose(0, _legs((10, 10, 10, 500)))
        assert [l for l in lines if l.startswith("⚠️ OVERLOAD")] == [
            f"⚠️ OVERLOAD: {phase} phase on Leg 1 is at Infinity% capacity (10.0A)." for phase in ("Red", "Yellow", "Blue")
        ]
        assert not any("HIGH NEUTRAL" in line for line in lines)
        assert "📊 CURRENT PHASE DISTRIBUTION ON LEG 1:" in lines
        assert lines[-len(CLOSING):] == CLOSING


class TestSettings:
    """Threshold overrides"""

    def test_overload_fraction(self, balanced_leg):
        # 100 A is 37% of 266.8 A rated
        settings = EngineSettings(overload_fraction=0.3)
        lines = diagnose(200, [balanced_leg], settings)
        assert lines[0] == "⚠️ OVERLOAD: Red phase on Leg 1 is at 37.5% capacity (100.0A)."


class TestMissingRating:
    """Zero or absent rating keeps a zero overload threshold"""

    @pytest.mark.parametrize("rating", [None, 0, "", "abc"])
    def test_loaded_phases_overload(self, rating, balanced_leg):
        report = diagnose_structured(rating, [balanced_leg])
        overloads = [l for l in report.lines if l.kind is DiagnosticKind.OVERLOAD]
        assert [l.text for l in overloads] == [
            "⚠️ OVERLOAD: Red phase on Leg 1 is at Infinity% capacity (100.0A).",
            "⚠️ OVERLOAD: Yellow phase on Leg 1 is at Infinity% capacity (100.0A).",
            "⚠️ OVERLOAD: Blue phase on Leg 1 is at Infinity% capacity (100.0A).",
        ]
        assert report.has_issues

    def test_idle_legs_still_clean(self):
        assert diagnose(None, _legs((0, 0, 0, 0))) == [c.NO_ISSUES_MESSAGE]


class TestExtremeReadings:
    """Huge finite readings never raise"""

    def test_large_amounts_format(self):
        assert format_amps(1e30) == str(Decimal(1e30)) + ".0"
        assert format_amps(1e300).endswith(".0")

    @pytest.mark.parametrize("value, text", [(math.inf, "Infinity"), (-math.inf, "-Infinity"), (math.nan, "NaN")])
    def test_non_finite_amounts(self, value, text):
        assert format_amps(value) == text

    def test_huge_single_phase(self):
        lines = diagnose(200, _legs((1e30, 0, 0, 0)))
        assert lines[0].startswith("⚠️ OVERLOAD: Red phase on Leg 1 is at ")
        assert lines[0].endswith(f"({format_amps(1e30)}A).")
        assert lines[-len(CLOSING):] == CLOSING

    def test_overflowing_bulk_sum(self):
        report = diagnose_structured(200, _legs((1e308, 1e308, 1e308, 0), (1e308, 1e308, 1e308, 0)))
        assert report.problem_leg_index == 0
        assert report.lines[0].kind is DiagnosticKind.OVERLOAD
