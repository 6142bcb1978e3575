"""Built-in invalidation rules.

Registered by the analyzer at start unless disabled. Business modules can
override any of them by registering a rule with the same operation id.
"""

from tierql.core.entities.invalidation import WILDCARD, InvalidationRule, RuleOrigin

BUSINESS_MODULES: tuple[str, ...] = (
    "inventory",
    "warehouse",
    "pos",
    "financial",
    "supplier",
    "employee",
    "crm",
    "location",
    "integration",
    "communication",
    "analytics",
    "backup",
    "security",
    "queue",
    "health",
)


def _builtin(
    operation_id: str,
    queries: list[str],
    types: list[str],
    tenant_specific: bool = True,
) -> InvalidationRule:
    return InvalidationRule.create(
        operation_id=operation_id,
        queries=queries,
        types=types,
        tenant_specific=tenant_specific,
        origin=RuleOrigin.BUILTIN,
    )


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def module_rules(module: str) -> list[InvalidationRule]:
    """Create/update/delete rules for one business module."""
    type_name = _capitalize(module)
    connection = f"{type_name}Connection"
    return [
        _builtin(f"create{type_name}", [f"{module}s", f"{module}Stats"], [type_name, connection]),
        _builtin(f"update{type_name}", [f"{module}s", module], [type_name]),
        _builtin(f"delete{type_name}", [f"{module}s", f"{module}Stats"], [type_name, connection]),
    ]


def default_rules() -> list[InvalidationRule]:
    """The fixed rule set shipped with the engine."""
    rules = [
        # Users
        _builtin("createUser", ["users", "userStats", "tenantUsers"], ["User", "UserConnection"]),
        _builtin("updateUser", ["users", "user", "currentUser", "userProfile"], ["User"]),
        _builtin("deleteUser", ["users", "userStats", "tenantUsers"], ["User", "UserConnection"]),
        # Tenants are shared across tenant scopes
        _builtin(
            "createTenant",
            ["tenants", "tenantStats"],
            ["Tenant", "TenantConnection"],
            tenant_specific=False,
        ),
        _builtin(
            "updateTenant",
            ["tenants", "tenant", "currentTenant"],
            ["Tenant"],
            tenant_specific=False,
        ),
        # Everything cached belongs to the previous tenant or session
        _builtin("switchTenant", [WILDCARD], [WILDCARD]),
        _builtin("logout", [WILDCARD], [WILDCARD]),
    ]
    for module in BUSINESS_MODULES:
        rules.extend(module_rules(module))
    return rules
