"""Decorators wiring application coroutines to the caches.

``@invalidates`` runs invalidation after a write completes and ``@cached``
serves a loader's result through the query cache. Both fall back to the
tenant bound with ``tierql.tenancy`` when none is given.
"""

import functools
import inspect
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar

from tierql.core.services.invalidation_engine import CacheInvalidationEngine
from tierql.core.services.query_cache import QueryCache
from tierql.tenancy import get_current_tenant

F = TypeVar("F", bound=Callable[..., Any])


def invalidates(
    engine: CacheInvalidationEngine,
    operation_id: str | None = None,
    wait: bool = False,
    tenant_id: str | None = None,
) -> Callable[[F], F]:
    """Decorator invalidating caches after an async mutation succeeds.

    The call arguments are handed to the engine as the mutation params.
    If the mutation raises, nothing is invalidated.

    Args:
        engine: The invalidation engine.
        operation_id: Mutation name. Defaults to the function name in
            camelCase, e.g. ``update_order`` -> ``updateOrder``.
        wait: Await invalidation before returning instead of scheduling it.
        tenant_id: Tenant to invalidate for. Defaults to the current tenant.

    Returns:
        Decorated function.

    Example:
        @invalidates(engine)
        async def update_order(id: str, status: str) -> Order:
            return await db.update_order(id, status)
    """

    def decorator(func: F) -> F:
        resolved_operation = operation_id or _camel_case(func.__name__)
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            result = await func(*args, **kwargs)

            params = _bind_arguments(signature, args, kwargs)
            tenant = tenant_id or get_current_tenant()
            if wait:
                await engine.invalidate_from_mutation(resolved_operation, params, tenant)
            else:
                engine.notify_mutation(resolved_operation, params, tenant)
            return result

        return wrapper  # type: ignore

    return decorator


def cached(
    query_cache: QueryCache,
    name: str | None = None,
    ttl: timedelta | None = None,
    tenant_id: str | None = None,
) -> Callable[[F], F]:
    """Decorator caching the result of an async loader.

    Results are keyed by name, call arguments and tenant, the same way
    query results are, so mutations naming the query invalidate them.

    Args:
        query_cache: The query cache to read and write through.
        name: Query name to cache under. Defaults to the function name in
            camelCase.
        ttl: Time-to-live for cached results. Tier defaults if None.
        tenant_id: Tenant the results belong to. Defaults to the current
            tenant.

    Returns:
        Decorated function.

    Example:
        @cached(query_cache, name="orders", ttl=timedelta(minutes=10))
        async def list_orders(status: str) -> list[dict]:
            return await db.list_orders(status)
    """

    def decorator(func: F) -> F:
        resolved_name = name or _camel_case(func.__name__)
        signature = inspect.signature(func)

        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            variables = _bind_arguments(signature, args, kwargs)
            return await query_cache.get_or_load(
                resolved_name,
                lambda: func(*args, **kwargs),
                variables=variables or None,
                tenant_id=tenant_id or get_current_tenant(),
                ttl=ttl,
            )

        return wrapper  # type: ignore

    return decorator


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _bind_arguments(
    signature: inspect.Signature,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
) -> dict[str, Any]:
    """Map a call's arguments to parameter names, skipping self/cls."""
    bound = signature.bind_partial(*args, **kwargs)
    return {
        key: value
        for key, value in bound.arguments.items()
        if key not in ("self", "cls")
    }
