# services/scheduling-service/src/tests/unit/test_safety.py
"""
Unit Tests for the Safety Classifier
"""

import pytest

from apps.core.services.minimums import MinimumsPolicy
from apps.core.services.safety import (
    MARGINAL,
    SAFE,
    SAFE_REASON,
    SEVERITY,
    UNSAFE,
    SafetyMargins,
    classify,
    crosswind_component,
    worst_result,
)
from tests.helpers import make_snapshot

MARGINS = SafetyMargins()


def minimums_for(level, **kwargs):
    return MinimumsPolicy().get_minimums(level, **kwargs)


class TestClassify:
    """Tests for classify."""

    def test_clear_day_is_safe_for_private_pilot(self):
        verdict = classify(make_snapshot(visibility=10, wind_speed=5), minimums_for('private_pilot'), MARGINS)

        assert verdict.result == SAFE
        assert verdict.confidence == 95
        assert verdict.reasons == [SAFE_REASON]

    def test_low_visibility_unsafe_for_early_student(self):
        # Visibility 2 SM, ceiling 800 ft: below every early student limit
        snapshot = make_snapshot(visibility=2, ceiling=800, wind_speed=5)
        verdict = classify(snapshot, minimums_for('early_student'), MARGINS)

        assert verdict.result == UNSAFE
        assert verdict.confidence == 90
        assert any('Visibility 2' in r for r in verdict.reasons)
        assert any('Ceiling 800ft' in r for r in verdict.reasons)

    def test_same_weather_safe_for_instrument_rated(self):
        snapshot = make_snapshot(visibility=2, ceiling=800, wind_speed=5)
        verdict = classify(snapshot, minimums_for('instrument_rated'), MARGINS)

        assert verdict.result == SAFE

    def test_marginal_band(self):
        # 3.5 SM is inside 3 * 1.2
        verdict = classify(make_snapshot(visibility=3.5), minimums_for('private_pilot'), MARGINS)

        assert verdict.result == MARGINAL
        assert verdict.confidence == 70
        assert verdict.reasons == ['Visibility 3.5SM near minimum 3SM']

    def test_unlimited_ceiling_skips_ceiling_check(self):
        verdict = classify(make_snapshot(ceiling=None), minimums_for('early_student'), MARGINS)

        assert not any('Ceiling' in r for r in verdict.reasons)

    def test_any_gust_unsafe_when_no_gusts_tolerated(self):
        snapshot = make_snapshot(wind_speed=3, wind_gust=4)
        verdict = classify(snapshot, minimums_for('early_student'), MARGINS)

        assert verdict.result == UNSAFE
        assert any('Gusts 4kt' in r for r in verdict.reasons)

    def test_precipitation_not_allowed(self):
        snapshot = make_snapshot(conditions=('RA',))
        verdict = classify(snapshot, minimums_for('early_student'), MARGINS)

        assert verdict.result == UNSAFE
        assert 'Precipitation not allowed: RA' in verdict.reasons

    def test_precipitation_allowed_for_mid_student(self):
        snapshot = make_snapshot(visibility=10, wind_speed=3, conditions=('RA',))
        verdict = classify(snapshot, minimums_for('mid_student'), MARGINS)

        assert verdict.result == SAFE

    def test_crosswind_only_with_runway_heading(self):
        snapshot = make_snapshot(wind_speed=19, wind_direction=270)
        minimums = minimums_for('commercial_pilot')

        assert classify(snapshot, minimums, MARGINS).result == SAFE
        verdict = classify(snapshot, minimums, MARGINS, runway_heading=360)
        assert verdict.result == MARGINAL
        assert any('Crosswind 19kt' in r for r in verdict.reasons)

    def test_unsafe_reasons_include_marginal_ones(self):
        snapshot = make_snapshot(visibility=2, wind_speed=19)
        verdict = classify(snapshot, minimums_for('private_pilot'), MARGINS)

        assert verdict.result == UNSAFE
        assert len(verdict.reasons) == 2

    @pytest.mark.parametrize('level', ['early_student', 'mid_student', 'private_pilot', 'instrument_rated'])
    def test_worse_weather_never_improves_result(self, level):
        minimums = minimums_for(level)
        better = make_snapshot(visibility=6, ceiling=4000, wind_speed=6)
        worse_variants = [
            make_snapshot(visibility=2, ceiling=4000, wind_speed=6),
            make_snapshot(visibility=6, ceiling=900, wind_speed=6),
            make_snapshot(visibility=6, ceiling=4000, wind_speed=30),
            make_snapshot(visibility=6, ceiling=4000, wind_speed=6, wind_gust=20),
        ]

        baseline = SEVERITY[classify(better, minimums, MARGINS).result]
        for worse in worse_variants:
            assert SEVERITY[classify(worse, minimums, MARGINS).result] >= baseline


class TestHelpers:

    def test_worst_result(self):
        assert worst_result([SAFE, UNSAFE, MARGINAL]) == UNSAFE
        assert worst_result([SAFE, MARGINAL]) == MARGINAL
        assert worst_result([]) == SAFE

    def test_crosswind_component(self):
        assert crosswind_component(270, 10, 360) == pytest.approx(10)
        assert crosswind_component(360, 10, 360) == pytest.approx(0)
        assert crosswind_component(None, 7, 90) == 7
