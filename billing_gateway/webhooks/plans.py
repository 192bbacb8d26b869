"""Static plan catalogue used when composing customer emails."""

PLAN_NAMES = {
    "plan_monthly": "Monthly Graphics Plan (₹49/month)",
    "plan_quarterly": "Quarterly Graphics Plan (₹99/quarter)",
    "plan_annual": "Annual Graphics Plan (₹299/year)",
}

TEMPLATE_COUNTS = {
    "plan_monthly": "1000+",
    "plan_quarterly": "3000+",
    "plan_annual": "5000+",
}

DEFAULT_PLAN_NAME = "Graphics Design Plan"
DEFAULT_TEMPLATE_COUNT = "1000+"


def plan_name(plan_id: str | None) -> str:
    return PLAN_NAMES.get(plan_id or "", DEFAULT_PLAN_NAME)


def templates_count(plan_id: str | None) -> str:
    return TEMPLATE_COUNTS.get(plan_id or "", DEFAULT_TEMPLATE_COUNT)
