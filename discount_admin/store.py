"""
Persistence collaborators.

The admin API only talks to the DiscountStore and Catalog protocols; the
in-memory implementations back the default app and the tests.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .errors import NotFoundError, StoreError
from .models import DiscountRule

logger = logging.getLogger(__name__)


class DiscountStore(Protocol):
    def get_all(self) -> List[DiscountRule]: ...

    def get_by_id(self, discount_id: int) -> Optional[DiscountRule]: ...

    def save(self, rule: DiscountRule) -> int: ...

    def delete(self, discount_id: int) -> bool: ...

    def reorder(self, ordered_ids: Sequence[int]) -> bool: ...

    def clear_usage_history(self, discount_id: int) -> None: ...


class Catalog(Protocol):
    def list_all(self) -> List[Tuple[int, str]]: ...

    def get_by_id(self, item_id: int) -> Optional[Tuple[int, str]]: ...


class InMemoryDiscountStore:
    """Thread-safe in-process DiscountStore."""

    def __init__(self, rules: Iterable[DiscountRule] = ()):
        self._lock = threading.Lock()
        self._rules: Dict[int, DiscountRule] = {}
        self._usage: Dict[int, List[Tuple[Optional[int], Optional[str]]]] = {}
        self._next_id = 1
        for rule in rules:
            self._seed(rule)

    def _seed(self, rule: DiscountRule) -> None:
        """Load a rule as-is; rules that already have an id keep it."""
        if rule.id is None:
            self.save(rule)
            return
        if rule.sort_order is None:
            position = max((r.sort_order or 0 for r in self._rules.values()), default=0) + 1
            rule = rule.model_copy(update={"sort_order": position})
        self._rules[rule.id] = rule
        self._usage.setdefault(rule.id, [])
        self._next_id = max(self._next_id, rule.id + 1)

    def get_all(self) -> List[DiscountRule]:
        with self._lock:
            return sorted(self._rules.values(), key=lambda r: (r.sort_order or 0, r.id))

    def get_by_id(self, discount_id: int) -> Optional[DiscountRule]:
        with self._lock:
            return self._rules.get(discount_id)

    def save(self, rule: DiscountRule) -> int:
        """Insert a new rule (no id) or replace an existing one. Returns the id."""
        with self._lock:
            if rule.id is not None and rule.id not in self._rules:
                raise NotFoundError(rule.id)

            if rule.code:
                for other in self._rules.values():
                    if other.id != rule.id and other.code and other.code.lower() == rule.code.lower():
                        raise StoreError(f"Coupon code “{rule.code}” is already in use")

            update = {}
            if rule.id is None:
                update["id"] = self._next_id
                self._next_id += 1
            if rule.sort_order is None:
                current = self._rules.get(rule.id) if rule.id is not None else None
                if current is not None and current.sort_order is not None:
                    update["sort_order"] = current.sort_order
                else:
                    update["sort_order"] = max((r.sort_order or 0 for r in self._rules.values()), default=0) + 1

            stored = rule.model_copy(update=update) if update else rule
            self._rules[stored.id] = stored
            self._usage.setdefault(stored.id, [])

        logger.info("Saved discount %s (%s)", stored.id, stored.name)
        return stored.id

    def delete(self, discount_id: int) -> bool:
        with self._lock:
            removed = self._rules.pop(discount_id, None)
            self._usage.pop(discount_id, None)
        if removed is None:
            logger.warning("Delete requested for unknown discount %s", discount_id)
            return False
        logger.info("Deleted discount %s", discount_id)
        return True

    def reorder(self, ordered_ids: Sequence[int]) -> bool:
        """Set sort order to each id's 1-based position. All ids must exist."""
        with self._lock:
            if any(i not in self._rules for i in ordered_ids):
                return False
            for position, discount_id in enumerate(ordered_ids, start=1):
                self._rules[discount_id] = self._rules[discount_id].model_copy(
                    update={"sort_order": position}
                )
        logger.info("Reordered %d discounts", len(ordered_ids))
        return True

    def record_usage(self, discount_id: int, user_id: Optional[int] = None, email: Optional[str] = None) -> None:
        with self._lock:
            if discount_id not in self._rules:
                raise NotFoundError(discount_id)
            self._usage[discount_id].append((user_id, email))

    def usage_count(self, discount_id: int) -> int:
        with self._lock:
            return len(self._usage.get(discount_id, []))

    def clear_usage_history(self, discount_id: int) -> None:
        with self._lock:
            if discount_id not in self._rules:
                raise NotFoundError(discount_id)
            self._usage[discount_id] = []
        logger.info("Cleared coupon usage history for discount %s", discount_id)


class InMemoryCatalog:
    """(id, name) lookup for products, product types or user groups."""

    def __init__(self, items: Iterable[Tuple[int, str]] = ()):
        self._items: Dict[int, str] = dict(items)

    def list_all(self) -> List[Tuple[int, str]]:
        return sorted(self._items.items())

    def get_by_id(self, item_id: int) -> Optional[Tuple[int, str]]:
        name = self._items.get(item_id)
        return None if name is None else (item_id, name)
