"""Plan definitions and resource limits per tenant plan.

A limit of -1 means unlimited. Unknown plans fall back to ``starter``.
"""

from dataclasses import dataclass
from typing import Any, Optional

UNLIMITED = -1

# ── Resource limits per plan ──
PLAN_LIMITS: dict[str, dict[str, Any]] = {
    "starter": {
        "max_users": 3,
        "max_agents": 5,
        "max_phone_numbers": 1,
        "max_calls_per_month": 100,
        "max_campaigns": 2,
        "features": ["basic_analytics", "email_support"],
    },
    "pro": {
        "max_users": 10,
        "max_agents": 20,
        "max_phone_numbers": 5,
        "max_calls_per_month": 1000,
        "max_campaigns": 10,
        "features": ["advanced_analytics", "priority_support", "api_access", "webhooks"],
    },
    "enterprise": {
        "max_users": UNLIMITED,
        "max_agents": UNLIMITED,
        "max_phone_numbers": UNLIMITED,
        "max_calls_per_month": UNLIMITED,
        "max_campaigns": UNLIMITED,
        "features": ["all_features", "dedicated_support", "custom_integration", "sla"],
    },
}

RESOURCES = (
    "max_users",
    "max_agents",
    "max_phone_numbers",
    "max_calls_per_month",
    "max_campaigns",
)


@dataclass
class LimitCheck:
    allowed: bool
    limit: int
    message: Optional[str] = None


def get_plan_limits(plan: str) -> dict[str, Any]:
    return PLAN_LIMITS.get(plan, PLAN_LIMITS["starter"])


def can_create_resource(current_count: int, plan: str, resource: str) -> LimitCheck:
    """Check whether one more ``resource`` fits in ``plan``."""
    if resource not in RESOURCES:
        raise KeyError(f"Unknown plan resource: {resource}")
    limit = get_plan_limits(plan)[resource]
    if limit == UNLIMITED:
        return LimitCheck(allowed=True, limit=UNLIMITED)
    if current_count >= limit:
        return LimitCheck(
            allowed=False,
            limit=limit,
            message=(
                f"Plan limit reached. Your {plan} plan allows {limit} "
                f"{resource}. Upgrade to create more."
            ),
        )
    return LimitCheck(allowed=True, limit=limit)
