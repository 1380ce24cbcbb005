"""Tests for the gross-to-net orchestrator."""

import copy
import dataclasses
import math

import pytest

from salarycalc.sdk.engine import (
    annual_allowances,
    annualize,
    compute_salary,
    compute_salary_with_context,
    taxable_income,
)
from salarycalc.sdk.errors import (
    CalcModeMismatch,
    EngineError,
    InvalidSalary,
    InvalidTaxClass,
    MissingTaxContext,
    NoSalary,
)
from salarycalc.sdk.rules import build_tax_context
from salarycalc.sdk.taxes import ContributionTotals

from conftest import memory_repo, progressive_year, run


def context(repo, country, **kwargs):
    kwargs.setdefault("year", 2026)
    return run(build_tax_context(repo, country_code=country, **kwargs))


def balanced(breakdown) -> bool:
    """gross = employee contributions + taxes + net, within rounding."""
    residual = breakdown.gross - breakdown.employee_contrib_total - breakdown.taxes_total - breakdown.net
    return abs(residual) <= 0.02


class TestValidation:
    """Context and input checks before any computation."""

    def test_missing_context(self):
        with pytest.raises(MissingTaxContext):
            compute_salary(None, 3000, "monthly")

    def test_forged_tax_class(self, shipped_repo):
        ctx = context(shipped_repo, "DE", tax_class="I")
        with pytest.raises(CalcModeMismatch) as exc:
            compute_salary(dataclasses.replace(ctx, tax_class="III"), 3000, "monthly")
        assert exc.value.cause == "calc_mode_mismatch"

    def test_forged_year(self, shipped_repo):
        ctx = context(shipped_repo, "UK")
        with pytest.raises(CalcModeMismatch):
            compute_salary(dataclasses.replace(ctx, year="2025"), 3000, "monthly")

    def test_missing_calc_mode(self, shipped_repo):
        ctx = context(shipped_repo, "UK")
        with pytest.raises(CalcModeMismatch) as exc:
            compute_salary(dataclasses.replace(ctx, calc_mode=None), 3000, "monthly")
        assert exc.value.cause == "missing_calc_mode"

    def test_class_still_mandatory(self, shipped_repo):
        ctx = context(shipped_repo, "DE", tax_class="I")
        with pytest.raises(InvalidTaxClass):
            compute_salary(dataclasses.replace(ctx, tax_class=None), 3000, "monthly")

    @pytest.mark.parametrize("amount", [None, "", "   "])
    def test_no_salary(self, shipped_repo, amount):
        with pytest.raises(NoSalary) as exc:
            compute_salary(context(shipped_repo, "UK"), amount, "monthly")
        assert exc.value.i18n_key == "error.noSalary"

    @pytest.mark.parametrize("amount", ["abc", -5, float("nan"), float("inf")])
    def test_invalid_salary(self, shipped_repo, amount):
        with pytest.raises(InvalidSalary) as exc:
            compute_salary(context(shipped_repo, "UK"), amount, "monthly")
        assert exc.value.i18n_key == "error.invalidSalary"

    def test_invalid_period(self, shipped_repo):
        with pytest.raises(EngineError) as exc:
            compute_salary(context(shipped_repo, "UK"), 3000, "weekly")
        assert exc.value.cause == "invalid_period"

    def test_numeric_string(self, shipped_repo):
        assert compute_salary(context(shipped_repo, "UK"), "5000", "monthly").annual.gross == 60000.0

    @pytest.mark.parametrize("benefits", ["abc", [100], float("nan")])
    def test_invalid_benefits(self, shipped_repo, benefits):
        with pytest.raises(EngineError) as exc:
            compute_salary(context(shipped_repo, "UK"), 3000, "monthly", benefits_annual=benefits)
        assert exc.value.cause == "invalid_benefits"

    def test_blank_benefits(self, shipped_repo):
        assert compute_salary(context(shipped_repo, "UK"), 3000, "monthly", benefits_annual="").annual.benefits == 0.0

    def test_malformed_brackets(self):
        """Bad bracket data in a rule document surfaces as a categorized error."""
        year = progressive_year(brackets=[{"up_to": "ten", "rate": 0.1}, {"up_to": None, "rate": 0.2}])
        repo = memory_repo({"rules-DE.json": {"country": "DE", "years": {"2026": year}}})
        with pytest.raises(EngineError) as exc:
            compute_salary(context(repo, "DE"), 3000, "monthly")
        assert exc.value.cause == "invalid_brackets"


class TestAnnualize:
    """Gross annualization and the special-payment split."""

    SP = {"enabled": True, "regular_months": 12, "default_salary_months": 14}

    def test_monthly_split(self):
        split = annualize(3000, "monthly", self.SP, 14)
        assert (split.regular, split.special, split.annual, split.monthly) == (36000, 6000, 42000, 3000)
        assert split.salary_months == 14

    def test_yearly_split(self):
        split = annualize(42000, "yearly", self.SP, 14)
        assert split.regular == pytest.approx(36000)
        assert split.special == pytest.approx(6000)
        assert split.monthly == pytest.approx(3500)

    def test_default_months(self):
        assert annualize(3000, "monthly", self.SP).salary_months == 14

    @pytest.mark.parametrize("months,expected,is_split", [
        (13.5, 14, True),
        (12.4, 12, False),
        (10, 12, False),
        (15, 15, True),
    ])
    def test_months_rounding(self, months, expected, is_split):
        split = annualize(3000, "monthly", self.SP, months)
        assert split.salary_months == expected
        assert split.is_split is is_split

    def test_without_special_payments(self):
        split = annualize(60000, "yearly", None, 14)
        assert (split.annual, split.monthly, split.is_split, split.salary_months) == (60000, 5000, False, None)

    def test_bad_months(self):
        with pytest.raises(EngineError) as exc:
            annualize(3000, "monthly", self.SP, "lots")
        assert exc.value.cause == "invalid_salary_months"


class TestTaxableIncome:
    """Generic and professional-deduction taxable income."""

    def test_generic(self):
        contrib = ContributionTotals(employee_total=1500, deductible_employee_total=1000)
        assert taxable_income(10000, contrib, 2000, {"income_tax": {}}) == 7000

    def test_never_negative(self):
        contrib = ContributionTotals(employee_total=0, deductible_employee_total=0)
        assert taxable_income(1000, contrib, 5000, {}) == 0.0

    def test_professional_deduction_clamped(self):
        contrib = ContributionTotals(employee_total=1000, deductible_employee_total=0)
        rules = {"income_tax": {"professional_deduction": {"rate": 0.1, "min": 100, "max": 500}}}
        assert taxable_income(10000, contrib, 0, rules) == pytest.approx(8500)

    def test_professional_deduction_disabled(self):
        contrib = ContributionTotals(employee_total=1000, deductible_employee_total=0)
        rules = {"income_tax": {"professional_deduction": {"enabled": False}}}
        assert taxable_income(10000, contrib, 0, rules) == 9000

    def test_dual_schedule_allowances(self, shipped_repo):
        assert annual_allowances(context(shipped_repo, "ES")) == 7550


class TestUnitedKingdom:
    """Progressive schedule with allowance and bracketed NI."""

    def test_breakdown(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "UK"), 5000, "monthly")
        annual = result.annual

        assert annual.gross == 60000.0
        assert annual.taxable_income == 47430.0
        assert annual.income_tax_total == 11432.0
        assert annual.employee_contrib_by_id == {"national_insurance": 3210.6}
        assert annual.employer_contrib_by_id == {"national_insurance": 7024.2}
        assert annual.net == 45357.4
        assert annual.tco == 67024.2
        assert result.monthly.net == 3779.78
        assert result.monthly.gross == 5000.0

    def test_yearly_input(self, shipped_repo):
        monthly = compute_salary(context(shipped_repo, "UK"), 5000, "monthly")
        yearly = compute_salary(context(shipped_repo, "UK"), 60000, "yearly")
        assert yearly.annual == monthly.annual
        assert yearly.meta["input_period"] == "yearly"

    def test_zero_salary(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "UK"), 0, "monthly")
        assert (result.annual.net, result.annual.tco) == (0.0, 0.0)

    def test_benefits_reported_only(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "UK"), 5000, "monthly", benefits_annual=1200)
        assert result.annual.benefits == 1200.0
        assert result.monthly.benefits == 100.0
        assert result.annual.net == 45357.4

    def test_tables(self, shipped_repo):
        tables = compute_salary(context(shipped_repo, "UK"), 5000, "monthly").tables
        assert tables["employee_contributions"]["rows"] == [{
            "key": "national_insurance",
            "label": "National Insurance (Class 1)",
            "month": 267.55,
            "year": 3210.6,
        }]
        assert [row["key"] for row in tables["taxes"]] == ["income_tax", "other_taxes", "taxes_total"]
        assert [row["key"] for row in tables["net_and_tco"]] == ["net", "tco"]
        assert tables["summary"][0] == {"key": "gross", "label_key": "output.gross.label", "month": 5000.0, "year": 60000.0}


class TestGermany:
    """Formula tariff with tax classes, children and solidarity levy."""

    def test_balanced(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "DE", tax_class="I"), 4500, "monthly")
        assert result.annual.income_tax_total > 0
        assert result.other_taxes.by_id["solidarity_surcharge"] == 0.0
        assert balanced(result.annual)
        assert result.annual.tco > result.annual.gross

    def test_class_iii_lower_than_i(self, shipped_repo):
        class_i = compute_salary(context(shipped_repo, "DE", tax_class="I"), 4500, "monthly")
        class_iii = compute_salary(context(shipped_repo, "DE", tax_class="III"), 4500, "monthly")
        assert class_iii.annual.income_tax_total < class_i.annual.income_tax_total

    def test_class_v_higher_than_i(self, shipped_repo):
        class_i = compute_salary(context(shipped_repo, "DE", tax_class="I"), 4500, "monthly")
        class_v = compute_salary(context(shipped_repo, "DE", tax_class="V"), 4500, "monthly")
        assert class_v.annual.income_tax_total > class_i.annual.income_tax_total

    def test_children_reduce_tax(self, shipped_repo):
        none = compute_salary(context(shipped_repo, "DE", tax_class="I"), 4500, "monthly")
        one = compute_salary(context(shipped_repo, "DE", tax_class="I", children_count=1), 4500, "monthly")
        assert one.annual.income_tax_total < none.annual.income_tax_total

    def test_high_income_solidarity(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "DE", tax_class="I"), 15000, "monthly")
        assert result.other_taxes.by_id["solidarity_surcharge"] > 0
        assert result.other_taxes.by_id["church_tax"] == 0.0
        assert balanced(result.annual)

    def test_meta(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "DE", tax_class="II"), 4500, "monthly")
        assert result.meta["tax_class"] == "II"
        assert result.meta["currency"] == "EUR"
        assert result.meta["rounding_mode"] == "nearest_cent"
        assert result.meta["disclaimers"]
        assert result.to_dict()["calc_mode"]["method"] == "de_estg_2026"


class TestFrance:
    """Taxable income after the professional expense deduction."""

    def test_standard_deduction(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "FR"), 3000, "monthly")
        assert result.annual.employee_contrib_total == 5976.0
        assert result.annual.taxable_income == 27021.6
        assert result.annual.income_tax_total == 1730.04
        assert result.annual.net == 28293.96

    def test_minimum_deduction(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "FR"), 300, "monthly")
        assert result.annual.taxable_income == 2507.4
        assert result.annual.income_tax_total == 0.0


class TestSpain:
    """National plus regional schedules."""

    def test_regions_differ(self, shipped_repo):
        madrid = compute_salary(context(shipped_repo, "ES", region="madrid"), 3000, "monthly")
        catalonia = compute_salary(context(shipped_repo, "ES", region="catalonia"), 3000, "monthly")

        assert madrid.income_tax.national.amount == catalonia.income_tax.national.amount
        assert madrid.income_tax.regional.amount != catalonia.income_tax.regional.amount
        assert madrid.annual.income_tax_total == pytest.approx(
            madrid.income_tax.national.amount + madrid.income_tax.regional.amount)
        assert catalonia.meta["region"] == "catalonia"

    def test_contribution_floor(self, shipped_repo):
        """Low earners contribute on the floor base."""
        result = compute_salary(context(shipped_repo, "ES"), 1000, "monthly")
        assert result.annual.employee_contrib_by_id["common_contingencies"] == pytest.approx(15876 * 0.047, abs=0.01)


class TestAustria:
    """13th/14th salary split and low-income tiers."""

    def test_split(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "AT"), 3000, "monthly", salary_months=14)
        special = result.income_tax.special

        assert result.annual.gross == 42000.0
        assert result.monthly.gross == 3000.0
        assert special.sixth == 6000.0
        assert special.overflow_to_regular == 0.0
        assert special.allowance == 620
        assert result.meta["salary_months"] == 14
        assert balanced(result.annual)

    def test_default_months_from_rules(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "AT"), 3000, "monthly")
        assert result.meta["salary_months"] == 14
        assert result.annual.gross == 42000.0

    def test_twelve_months(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "AT"), 3000, "monthly", salary_months=12)
        assert result.income_tax.special is None
        assert result.annual.gross == 36000.0

    def test_portion_ceilings(self, shipped_repo):
        """Regular and special portions are capped separately."""
        result = compute_salary(context(shipped_repo, "AT"), 200000, "yearly", salary_months=14)
        assert result.annual.employee_contrib_by_id["pension"] == pytest.approx((83160 + 13860) * 0.1025, abs=0.01)

    def test_low_income_tier(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "AT"), 2300, "monthly", salary_months=14)
        assert result.annual.employee_contrib_by_id["unemployment"] == pytest.approx(
            2300 * 12 * 0.01 + 2300 * 2 * 0.0295, abs=0.01)

    def test_employer_levies_in_tco_only(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "AT"), 3000, "monthly")
        assert result.annual.employer_other_taxes_total == pytest.approx(42000 * (0.037 + 0.03), abs=0.01)
        assert result.annual.employee_other_taxes_total == 0.0
        assert balanced(result.annual)

    def test_context_not_mutated(self, shipped_repo):
        ctx = context(shipped_repo, "AT")
        snapshot = copy.deepcopy((ctx.year_rules, ctx.income_tax, ctx.social_contributions, ctx.other_taxes))
        compute_salary(ctx, 200000, "yearly", salary_months=14)
        assert (ctx.year_rules, ctx.income_tax, ctx.social_contributions, ctx.other_taxes) == snapshot


class TestCreditsAndLevies:
    """Countries with credits, employer-only schemes and surcharges."""

    def test_netherlands_credits(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "NL"), 4000, "monthly")
        assert result.income_tax.credits_total > 0
        assert set(result.income_tax.credits_by_id) == {"general_tax_credit", "labour_tax_credit"}
        assert result.income_tax.main.amount == result.income_tax.total
        assert result.annual.employer_contrib_by_id["zvw"] == 3124.8
        assert result.annual.employee_contrib_total == 0.0

    def test_italy_surcharges(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "IT"), 3000, "monthly")
        assert result.other_taxes.by_id["regional_surcharge"] == pytest.approx(
            result.annual.taxable_income * 0.0173, abs=0.01)
        assert balanced(result.annual)

    def test_sweden_formula(self, shipped_repo):
        result = compute_salary(context(shipped_repo, "SE"), 40000, "monthly")
        assert result.tax_context.calc_mode.method == "se_job_credit_2026"
        assert result.annual.income_tax_total > 0
        assert balanced(result.annual)

    @pytest.mark.parametrize("country", ["PL", "SI"])
    def test_progressive_countries(self, shipped_repo, country):
        low = compute_salary(context(shipped_repo, country), 2000, "monthly")
        high = compute_salary(context(shipped_repo, country), 8000, "monthly")
        assert high.annual.income_tax_total > low.annual.income_tax_total
        assert high.annual.net > low.annual.net
        assert high.annual.tco >= high.annual.net
        assert not math.isnan(high.annual.net)


class TestCombinedEntryPoint:
    """compute_salary_with_context composes resolution and computation."""

    @pytest.mark.parametrize("country,kwargs", [
        ("AT", {"salary_months": 14}),
        ("DE", {"tax_class": "III", "children_count": 2}),
        ("ES", {"region": "valencia"}),
    ])
    def test_matches_explicit_context(self, shipped_repo, country, kwargs):
        resolve_kwargs = {k: v for k, v in kwargs.items() if k != "salary_months"}
        ctx = context(shipped_repo, country, **resolve_kwargs)
        explicit = compute_salary(ctx, 3000, "monthly", salary_months=kwargs.get("salary_months"))

        combined = run(compute_salary_with_context(
            shipped_repo,
            country_code=country,
            year=2026,
            salary_amount=3000,
            salary_period="monthly",
            **kwargs,
        ))

        assert combined.to_dict() == explicit.to_dict()
