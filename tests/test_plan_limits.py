"""
Unit tests for the plan table.
Tests limits, prices, catalog entries and plan parsing.
"""
import pytest

from app.core.exceptions import ValidationError
from app.core.plan_limits import (
    PlanType,
    SubscriptionStatus,
    AnalyticsTier,
    SupportTier,
    UNLIMITED,
    get_plan_limits,
    get_plan_price,
    get_plan_details,
    list_plans,
    is_unlimited,
    parse_plan_type,
    parse_status,
)


@pytest.mark.parametrize("plan,accounts,posts,analytics,support,team", [
    ("free_trial", 2, 5, AnalyticsTier.BASIC, SupportTier.COMMUNITY, 1),
    ("free", 1, 1, AnalyticsTier.BASIC, SupportTier.COMMUNITY, 1),
    ("standard", 4, 8, AnalyticsTier.ADVANCED, SupportTier.PRIORITY, 1),
    ("premium", -1, -1, AnalyticsTier.CUSTOM, SupportTier.PREMIUM, -1),
])
def test_plan_limits_table(plan, accounts, posts, analytics, support, team):
    """Test every plan carries the expected limits."""
    limits = get_plan_limits(plan)
    assert limits == {
        "social_accounts": accounts,
        "scheduled_posts_per_week": posts,
        "analytics_tier": analytics,
        "support_tier": support,
        "team_members": team,
    }


@pytest.mark.parametrize("plan,price", [
    ("free_trial", 0),
    ("free", 0),
    ("standard", 10),
    ("premium", 25),
])
def test_plan_prices(plan, price):
    assert get_plan_price(plan) == price


def test_get_plan_limits_returns_copy():
    """Test mutating the returned limits does not leak into the table."""
    limits = get_plan_limits(PlanType.STANDARD)
    limits["social_accounts"] = 99
    assert get_plan_limits(PlanType.STANDARD)["social_accounts"] == 4


def test_get_plan_limits_unknown_plan():
    with pytest.raises(ValidationError):
        get_plan_limits("enterprise")


def test_is_unlimited():
    assert is_unlimited(UNLIMITED)
    assert is_unlimited(-1)
    assert not is_unlimited(0)
    assert not is_unlimited(5)


def test_get_plan_details():
    """Test catalog entry includes name, price and limits."""
    details = get_plan_details("premium")
    assert details["name"] == "Premium Plan"
    assert details["price"] == 25
    assert details["interval"] == "month"
    assert details["limits"]["social_accounts"] == UNLIMITED
    assert "Unlimited team members" in details["features"]


def test_get_plan_details_falls_back_to_free():
    details = get_plan_details("enterprise")
    assert details["name"] == "Free Plan"
    assert details["price"] == 0


def test_get_plan_details_is_independent_copy():
    details = get_plan_details("standard")
    details["features"].append("Something extra")
    assert "Something extra" not in get_plan_details("standard")["features"]


def test_list_plans_excludes_trial():
    """Test only user-selectable plans are listed."""
    plans = list_plans()
    assert [p["id"] for p in plans] == ["free", "standard", "premium"]
    assert all("limits" in p and "price" in p for p in plans)


def test_parse_plan_type():
    assert parse_plan_type("standard") is PlanType.STANDARD
    assert parse_plan_type(PlanType.PREMIUM) is PlanType.PREMIUM
    with pytest.raises(ValidationError):
        parse_plan_type("gold")


def test_parse_status():
    assert parse_status("past_due") is SubscriptionStatus.PAST_DUE
    with pytest.raises(ValidationError):
        parse_status("paused")
