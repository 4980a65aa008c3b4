"""Static inspection of API descriptions."""

from .analyzer import RuleBasedAnalyzer
from .rules import (
    BrokenAuthenticationRule,
    BusinessFlowRule,
    FunctionLevelAuthRule,
    ImproperInventoryRule,
    ObjectLevelAuthRule,
    PropertyLevelAuthRule,
    ResourceConsumptionRule,
    SecurityMisconfigurationRule,
    SSRFRule,
    StaticRule,
    UnsafeConsumptionRule,
    default_rules,
)

__all__ = [
    "BrokenAuthenticationRule",
    "BusinessFlowRule",
    "FunctionLevelAuthRule",
    "ImproperInventoryRule",
    "ObjectLevelAuthRule",
    "PropertyLevelAuthRule",
    "ResourceConsumptionRule",
    "RuleBasedAnalyzer",
    "SSRFRule",
    "SecurityMisconfigurationRule",
    "StaticRule",
    "UnsafeConsumptionRule",
    "default_rules",
]
