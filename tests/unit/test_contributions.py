"""Tests for social contribution calculations."""

import copy

import pytest

from salarycalc.sdk.errors import EngineError
from salarycalc.sdk.taxes import cap_ceilings, compute_contributions, effective_base, merge_contributions
from salarycalc.sdk.taxes.contributions import low_income_rate

from conftest import run


def scheme(**fields):
    entry = {"applies": True, "employee_rate": 0.1, "employer_rate": 0.2}
    entry.update(fields)
    return entry


class TestEffectiveBase:
    """Tests for effective_base."""

    def test_ceiling(self):
        assert effective_base(80000, ceiling=60000) == 60000

    def test_floor_raises_base(self):
        assert effective_base(10000, floor=20000) == 20000

    def test_never_negative(self):
        assert effective_base(-100) == 0.0

    def test_unbounded(self):
        assert effective_base(123.45) == 123.45


class TestComputeContributions:
    """Tests for compute_contributions."""

    def test_ceiling_clamped(self):
        """80,000 over a 50,000 ceiling at 10% is 5,000, not 8,000."""
        totals = compute_contributions(80000, {"pension": scheme(floor=0, ceiling=50000)})
        assert totals.employee_by_id["pension"] == pytest.approx(5000.0)
        assert totals.employer_by_id["pension"] == pytest.approx(10000.0)

    def test_floor(self):
        totals = compute_contributions(10000, {"pension": scheme(floor=15000)})
        assert totals.employee_by_id["pension"] == pytest.approx(1500.0)

    def test_malformed_employee_brackets(self):
        entry = {"label": "NI", "applies": True, "employee": {"brackets": [{"up_to": 12570, "rate": "low"}]}}
        with pytest.raises(EngineError) as exc:
            compute_contributions(30000, {"ni": entry})
        assert exc.value.cause == "invalid_brackets"

    def test_applies_false_keeps_row(self):
        totals = compute_contributions(50000, {"church": scheme(applies=False, label="Church")})
        assert totals.employee_by_id == {"church": 0.0}
        assert totals.employer_by_id == {"church": 0.0}
        assert totals.labels_by_id == {"church": "Church"}
        assert totals.employee_total == 0.0

    def test_other_list_ids(self):
        schemes = {"health": scheme(), "other": [scheme(label="Levy A"), scheme(label="Levy B")]}
        totals = compute_contributions(1000, schemes)
        assert list(totals.employee_by_id) == ["health", "other_0", "other_1"]
        assert totals.labels_by_id["other_1"] == "Levy B"
        assert totals.labels_by_id["health"] == "health"

    def test_deductible_total(self):
        schemes = {
            "pension": scheme(deductible_for_tax=True),
            "health": scheme(employee_rate=0.05),
        }
        totals = compute_contributions(10000, schemes)
        assert totals.employee_total == pytest.approx(1500.0)
        assert totals.deductible_employee_total == pytest.approx(1000.0)

    def test_empty(self):
        assert compute_contributions(50000, None).employee_total == 0.0

    def test_bracketed_employee_and_thresholded_employer(self, shipped_repo):
        """UK Class 1 NI on 60,000."""
        schemes = run(shipped_repo.load("UK"))["years"]["2026"]["social_contributions"]
        totals = compute_contributions(60000, schemes)
        assert totals.employee_by_id["national_insurance"] == pytest.approx(37700 * 0.08 + 9730 * 0.02)
        assert totals.employer_by_id["national_insurance"] == pytest.approx((60000 - 9100) * 0.138)

    def test_below_employer_threshold(self, shipped_repo):
        schemes = run(shipped_repo.load("UK"))["years"]["2026"]["social_contributions"]
        totals = compute_contributions(750 * 12, schemes)
        assert totals.employee_by_id["national_insurance"] == 0.0
        assert totals.employer_by_id["national_insurance"] == 0.0


class TestLowIncomeTiers:
    """Austrian-style reduced employee rates for low monthly pay."""

    @pytest.fixture
    def unemployment(self, shipped_repo):
        return run(shipped_repo.load("AT"))["years"]["2026"]["social_contributions"]["unemployment"]

    @pytest.mark.parametrize("monthly,rate", [
        (2200, 0.0),
        (2225, 0.0),
        (2225.01, 0.01),
        (2427, 0.01),
        (2427.01, 0.02),
        (2630, 0.02),
        (2630.01, 0.0295),
        (4000, 0.0295),
    ])
    def test_tier_edges(self, unemployment, monthly, rate):
        """Tier bounds are inclusive; the first matching tier wins."""
        assert low_income_rate(monthly * 12, unemployment, 0.0295) == rate

    def test_regular_portion_uses_tier(self, unemployment):
        totals = compute_contributions(2300 * 12, {"unemployment": unemployment})
        assert totals.employee_by_id["unemployment"] == pytest.approx(2300 * 12 * 0.01)

    def test_special_portion_uses_standard_rate(self, unemployment):
        totals = compute_contributions(2300 * 2, {"unemployment": unemployment}, portion="special")
        assert totals.employee_by_id["unemployment"] == pytest.approx(2300 * 2 * 0.0295)

    def test_annual_basis(self):
        entry = {
            "low_income_employee_rate_basis": "annual",
            "low_income_employee_rate_tiers": [{"up_to": 20000, "employee_rate": 0.0}],
        }
        assert low_income_rate(19000, entry, 0.03) == 0.0
        assert low_income_rate(21000, entry, 0.03) == 0.03


class TestCapAndMerge:
    """Tests for cap_ceilings and merge_contributions."""

    def test_cap_lowers_and_fills(self):
        schemes = {
            "pension": scheme(ceiling=97020),
            "accident": scheme(),
            "other": [scheme(ceiling=5000)],
        }
        snapshot = copy.deepcopy(schemes)

        capped = cap_ceilings(schemes, 13860)

        assert capped["pension"]["ceiling"] == 13860
        assert capped["accident"]["ceiling"] == 13860
        assert capped["other"][0]["ceiling"] == 5000
        assert schemes == snapshot

    def test_no_cap(self):
        schemes = {"pension": scheme()}
        assert cap_ceilings(schemes, None) is schemes

    def test_merge(self):
        a = compute_contributions(1000, {"p": scheme(deductible_for_tax=True)})
        b = compute_contributions(500, {"p": scheme(deductible_for_tax=True)}, portion="special")
        merged = merge_contributions(a, b)
        assert merged.employee_by_id["p"] == pytest.approx(150.0)
        assert merged.employer_by_id["p"] == pytest.approx(300.0)
        assert merged.deductible_employee_total == pytest.approx(150.0)
