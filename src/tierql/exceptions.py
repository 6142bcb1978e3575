"""Exceptions raised by tierql."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tierql.core.entities.cache_entry import CacheTier


class TierQLError(Exception):
    """Base class for tierql errors."""

    pass


class TierOperationError(TierQLError):
    """Raised when a write-side operation failed on one or more cache tiers.

    Every tier is attempted before this is raised, so tiers that did not
    fail have already applied the operation.
    """

    def __init__(
        self,
        operation: str,
        errors: "dict[CacheTier, BaseException]",
    ) -> None:
        self.operation = operation
        self.errors = errors
        failed = ", ".join(tier.value for tier in errors)
        super().__init__(f"{operation} failed on tier(s): {failed}")
