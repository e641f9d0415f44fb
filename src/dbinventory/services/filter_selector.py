"""
Filter selection for database inventories.

Chooses the single active primary criterion of a FilterRequest, keeps the
matching databases, then applies the exclusion list.
"""

import logging
from typing import Callable, Iterable, Optional, Sequence

from ..models import (
    AccessMode,
    DatabaseRecord,
    FilterCriterion,
    FilterRequest,
)

logger = logging.getLogger(__name__)

NameComparer = Callable[[str, str], bool]


def case_sensitive(a: str, b: str) -> bool:
    return a == b


def case_insensitive(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


def get_name_comparer(case_sensitive_names: bool) -> NameComparer:
    """Comparer matching the server's collation sensitivity."""
    return case_sensitive if case_sensitive_names else case_insensitive


class FilterSelector:
    """
    Applies a FilterRequest to the databases of one instance.

    Name lists (databases, owners, exclude) are matched with the comparer
    given at construction, since case sensitivity follows the server collation.
    """

    def __init__(self, name_comparer: Optional[NameComparer] = None):
        self._compare = name_comparer or case_sensitive

    def _in_list(self, value: Optional[str], names: Iterable[str]) -> bool:
        if value is None:
            return False
        return any(self._compare(value, name) for name in names)

    def _predicate(
        self, criterion: FilterCriterion, request: FilterRequest
    ) -> Callable[[DatabaseRecord], bool]:
        """Build the keep-predicate for the active criterion."""
        if criterion == FilterCriterion.SYSTEM_ONLY:
            return lambda db: db.is_system_object
        if criterion == FilterCriterion.USER_ONLY:
            return lambda db: not db.is_system_object
        if criterion == FilterCriterion.DATABASES:
            return lambda db: self._in_list(db.name, request.databases)
        if criterion == FilterCriterion.STATUS:
            return lambda db: db.status == request.status
        if criterion == FilterCriterion.OWNERS:
            return lambda db: self._in_list(db.owner, request.owners)
        if criterion == FilterCriterion.ACCESS:
            if request.access == AccessMode.READ_ONLY:
                return lambda db: db.read_only
            return lambda db: not db.read_only
        if criterion == FilterCriterion.ENCRYPTED:
            return lambda db: db.encrypted
        if criterion == FilterCriterion.RECOVERY_MODEL:
            return lambda db: db.recovery_model == request.recovery_model
        return lambda db: True

    def select(
        self,
        all_databases: Sequence[DatabaseRecord],
        request: FilterRequest,
    ) -> list[DatabaseRecord]:
        """
        Select the databases matching a filter request.

        Args:
            all_databases: Every database on the instance
            request: Filter request with at most one primary criterion

        Returns:
            New list of matching databases, in input order

        Raises:
            ConflictingFiltersError: If more than one primary criterion is set
        """
        criterion = request.active_criterion()

        candidates = list(all_databases)
        if request.only_accessible:
            candidates = [db for db in candidates if db.is_accessible]

        keep = self._predicate(criterion, request)
        selected = [db for db in candidates if keep(db)]

        if request.exclude:
            selected = [
                db for db in selected
                if not self._in_list(db.name, request.exclude)
            ]

        logger.debug(
            f"Filter '{criterion.value}' selected {len(selected)} of "
            f"{len(all_databases)} databases"
        )
        return selected
