"""Optimistic list state.

Shows the expected result of a submitted change (e.g. adding a manager)
before the gateway has processed it, then reconciles once authoritative
data arrives.
"""

from typing import Any, Callable, Generic, Hashable, Iterable, Optional, TypeVar

T = TypeVar("T")


class OptimisticList(Generic[T]):
    """Reducer over confirmed items plus pending local additions and removals.

    Items are matched by ``key`` (identity of the item by default).
    """

    def __init__(
        self,
        confirmed: Optional[Iterable[T]] = None,
        key: Callable[[T], Hashable] = lambda item: item,
    ):
        self._key = key
        self.confirmed: list[T] = list(confirmed or [])
        self.optimistic_adds: list[T] = []
        self.optimistic_removes: list[T] = []

    def _keys(self, items: Iterable[T]) -> set[Any]:
        return {self._key(item) for item in items}

    def apply(self, adds: Iterable[T] = (), removes: Iterable[T] = ()) -> None:
        """Record a local change that has not been confirmed yet.

        Adding an item cancels a pending removal of it and vice versa.
        """
        adds = list(adds)
        removes = list(removes)

        add_keys = self._keys(adds)
        remove_keys = self._keys(removes)

        self.optimistic_removes = [
            item for item in self.optimistic_removes if self._key(item) not in add_keys
        ]
        self.optimistic_adds = [
            item for item in self.optimistic_adds if self._key(item) not in remove_keys
        ]

        existing_adds = self._keys(self.optimistic_adds)
        for item in adds:
            if self._key(item) not in existing_adds:
                self.optimistic_adds.append(item)
                existing_adds.add(self._key(item))

        existing_removes = self._keys(self.optimistic_removes)
        for item in removes:
            if self._key(item) not in existing_removes:
                self.optimistic_removes.append(item)
                existing_removes.add(self._key(item))

    def merged(self) -> list[T]:
        """Confirmed items minus pending removals plus pending additions.

        Order is preserved and no item appears twice.
        """
        remove_keys = self._keys(self.optimistic_removes)
        seen: set[Any] = set()
        result = []

        for item in [*self.confirmed, *self.optimistic_adds]:
            item_key = self._key(item)
            if item_key in remove_keys or item_key in seen:
                continue
            seen.add(item_key)
            result.append(item)

        return result

    def reconcile(self, confirmed: Iterable[T]) -> None:
        """Replace confirmed data with the authoritative list.

        Pending additions now present and pending removals now absent are
        settled and dropped.
        """
        self.confirmed = list(confirmed)
        confirmed_keys = self._keys(self.confirmed)

        self.optimistic_adds = [
            item for item in self.optimistic_adds if self._key(item) not in confirmed_keys
        ]
        self.optimistic_removes = [
            item for item in self.optimistic_removes if self._key(item) in confirmed_keys
        ]

    def rollback(self) -> None:
        """Discard all pending changes (e.g. the transaction failed)."""
        self.optimistic_adds = []
        self.optimistic_removes = []

    @property
    def is_settled(self) -> bool:
        return not self.optimistic_adds and not self.optimistic_removes
