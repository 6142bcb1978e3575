"""Current-tenant context.

Lets callers set the tenant once per request or task instead of passing it
to every decorated call.

Usage:
    from tierql.tenancy import tenant_context

    async def handle_request(request):
        with tenant_context(request.headers["X-Tenant"]):
            return await list_orders()
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

_current_tenant: ContextVar[str | None] = ContextVar("tierql_current_tenant", default=None)


def get_current_tenant() -> str | None:
    """Return the tenant bound to the current context, if any."""
    return _current_tenant.get()


def set_current_tenant(tenant_id: str | None) -> Token[str | None]:
    """Bind a tenant to the current context.

    Returns:
        A token for ``reset_current_tenant``.
    """
    return _current_tenant.set(tenant_id)


def reset_current_tenant(token: Token[str | None]) -> None:
    _current_tenant.reset(token)


@contextmanager
def tenant_context(tenant_id: str | None) -> Iterator[str | None]:
    """Bind a tenant for the duration of a with block."""
    token = set_current_tenant(tenant_id)
    try:
        yield tenant_id
    finally:
        reset_current_tenant(token)
