"""Domain services for tierql."""

from tierql.core.services.default_rules import BUSINESS_MODULES, default_rules, module_rules
from tierql.core.services.impact_analyzer import UNKNOWN_ENTITY, MutationImpactAnalyzer
from tierql.core.services.invalidation_engine import CacheInvalidationEngine
from tierql.core.services.multi_tier_cache import MultiTierCache, WarmupItem
from tierql.core.services.query_cache import QueryCache

__all__ = [
    "CacheInvalidationEngine",
    "MultiTierCache",
    "WarmupItem",
    "QueryCache",
    # Rules
    "MutationImpactAnalyzer",
    "UNKNOWN_ENTITY",
    "BUSINESS_MODULES",
    "default_rules",
    "module_rules",
]
