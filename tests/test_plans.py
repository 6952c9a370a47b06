"""
Test suite for the plan catalog

Covers plan lookup, amount bounds, plan recommendation and catalog loading.
"""

import json
import pytest
from decimal import Decimal

from investment_engine.config import EngineConfig
from investment_engine.errors import AmountOutOfRange, NotFound, ValidationError
from investment_engine.plans import DEFAULT_PLANS, InvestmentPlan, PlanCatalog, load_catalog


def make_plan(plan_id, min_amount, max_amount, total_return="100", daily="1", days=5):
    return InvestmentPlan(
        id=plan_id, name=plan_id.upper(),
        min_amount=Decimal(min_amount),
        max_amount=Decimal(max_amount) if max_amount is not None else None,
        daily_profit_percent=Decimal(daily), duration_days=days,
        total_return_percent=Decimal(total_return),
    )


class TestInvestmentPlan:
    """Test plan construction and validation"""

    def test_numeric_fields_normalized(self):
        plan = InvestmentPlan(
            id="x", name="X", min_amount="10", max_amount=20,
            daily_profit_percent="1.5", duration_days="4", total_return_percent=106,
        )
        assert plan.min_amount == Decimal("10")
        assert plan.max_amount == Decimal("20")
        assert plan.daily_profit_percent == Decimal("1.5")
        assert plan.duration_days == 4
        assert plan.total_return_percent == Decimal("106")

    def test_max_below_min_rejected(self):
        with pytest.raises(ValueError, match="maximum amount is below minimum"):
            make_plan("bad", "100", "50")

    def test_zero_duration_rejected(self):
        with pytest.raises(ValueError, match="duration must be at least one day"):
            make_plan("bad", "1", "2", days=0)

    def test_negative_percent_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            make_plan("bad", "1", "2", daily="-1")

    def test_dict_round_trip_keeps_unbounded_max(self):
        plan = make_plan("open", "100", None)
        data = plan.to_dict()
        assert data["max_amount"] is None
        assert InvestmentPlan.from_dict(data) == plan


class TestPlanCatalog:
    """Test catalog lookups and amount validation"""

    def setup_method(self):
        self.catalog = PlanCatalog.default()

    def test_default_catalog_tiers(self):
        assert [p.id for p in self.catalog] == ["starter", "premium", "delux", "luxury"]
        starter = self.catalog.find_plan("starter")
        assert starter.min_amount == Decimal("50")
        assert starter.max_amount == Decimal("999")
        assert starter.daily_profit_percent == Decimal("2")
        assert starter.duration_days == 3
        assert starter.total_return_percent == Decimal("106")
        assert self.catalog.find_plan("luxury").max_amount is None

    def test_find_unknown_plan(self):
        with pytest.raises(NotFound, match="Plan gold not found"):
            self.catalog.find_plan("gold")

    def test_find_by_name_case_insensitive(self):
        assert self.catalog.find_by_name("premium plan").id == "premium"

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate plan id"):
            PlanCatalog([make_plan("a", "1", "2"), make_plan("a", "3", "4")])

    def test_contains_and_len(self):
        assert "delux" in self.catalog
        assert "gold" not in self.catalog
        assert len(self.catalog) == len(DEFAULT_PLANS)

    def test_amount_below_minimum(self):
        starter = self.catalog.find_plan("starter")
        with pytest.raises(AmountOutOfRange) as exc_info:
            self.catalog.validate_amount(starter, Decimal("40"))

        error = exc_info.value
        assert isinstance(error, ValidationError)
        assert error.minimum == Decimal("50")
        assert error.maximum == Decimal("999")
        assert error.to_dict()["min"] == "50"
        assert error.to_dict()["max"] == "999"

    def test_unbounded_plan_accepts_large_amounts(self):
        luxury = self.catalog.find_plan("luxury")
        self.catalog.validate_amount(luxury, Decimal("1000000000"))

    def test_malformed_amount(self):
        with pytest.raises(ValidationError, match="Not a monetary value"):
            self.catalog.validate_amount(self.catalog.find_plan("starter"), "lots")

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", Decimal("sNaN")])
    def test_non_finite_amount(self, amount):
        with pytest.raises(ValidationError, match="Not a monetary value"):
            self.catalog.validate_amount(self.catalog.find_plan("starter"), amount)
        with pytest.raises(ValidationError, match="Not a monetary value"):
            self.catalog.recommend_plan(amount)

    @pytest.mark.parametrize("amount,accepted", [
        ("49.99", False),
        ("50", True),
        ("500", True),
        ("999", True),
        ("999.01", False),
    ])
    def test_validate_amount_accepts_iff_within_bounds(self, amount, accepted):
        starter = self.catalog.find_plan("starter")
        if accepted:
            self.catalog.validate_amount(starter, Decimal(amount))
        else:
            with pytest.raises(AmountOutOfRange):
                self.catalog.validate_amount(starter, Decimal(amount))

    @pytest.mark.parametrize("amount,expected", [
        ("50", "starter"),
        ("999", "starter"),
        ("1000", "premium"),
        ("5000", "delux"),
        ("20000", "luxury"),
        ("10", None),
    ])
    def test_recommend_plan(self, amount, expected):
        plan = self.catalog.recommend_plan(Decimal(amount))
        assert (plan.id if plan else None) == expected


class TestRecommendation:
    """Test recommendation among overlapping plans"""

    def test_highest_total_return_wins(self):
        catalog = PlanCatalog([
            make_plan("low", "0", "1000", total_return="110"),
            make_plan("high", "100", "500", total_return="140"),
        ])
        assert catalog.recommend_plan(Decimal("200")).id == "high"
        assert catalog.recommend_plan(Decimal("50")).id == "low"

    def test_ties_go_to_first_declared(self):
        catalog = PlanCatalog([
            make_plan("first", "0", "1000", total_return="120"),
            make_plan("second", "0", "1000", total_return="120"),
        ])
        assert catalog.recommend_plan(Decimal("10")).id == "first"


class TestCatalogLoading:
    """Test building catalogs from files and configuration"""

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "plans.json"
        path.write_text(json.dumps([
            {"id": "basic", "name": "Basic", "min_amount": "10", "max_amount": "100",
             "daily_profit_percent": "1", "duration_days": 5, "total_return_percent": "105"},
            {"id": "open", "min_amount": "100", "max_amount": None,
             "daily_profit_percent": "2", "duration_days": 10, "total_return_percent": "120"},
        ]))

        catalog = PlanCatalog.from_json_file(path)

        assert [p.id for p in catalog] == ["basic", "open"]
        assert catalog.find_plan("open").name == "open"
        assert catalog.find_plan("open").max_amount is None

    def test_json_file_must_hold_list(self, tmp_path):
        path = tmp_path / "plans.json"
        path.write_text(json.dumps({"id": "basic"}))
        with pytest.raises(ValueError, match="must contain a JSON list"):
            PlanCatalog.from_json_file(path)

    def test_load_catalog_defaults_to_built_in(self):
        catalog = load_catalog(EngineConfig(plans_file=None))
        assert len(catalog) == 4

    def test_load_catalog_from_configured_file(self, tmp_path):
        path = tmp_path / "plans.json"
        path.write_text(json.dumps([
            {"id": "only", "min_amount": "1", "max_amount": "2",
             "daily_profit_percent": "1", "duration_days": 1, "total_return_percent": "101"},
        ]))
        catalog = load_catalog(EngineConfig(plans_file=str(path)))
        assert [p.id for p in catalog] == ["only"]
