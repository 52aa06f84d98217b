"""
Module: qmx_kernel.stores.base
Responsibility: Generic in-memory keyed collection with store-assigned ids.
    Concrete stores (students, cash) bind the entity type, the way an entity
    is built from a builder, and the NotFound error they raise.
Architecture position: Kernel > Stores.  May import from domain/ and
    exceptions only.  Stores perform no I/O and take no locks; the manager
    serializes access to them.

Invariants enforced:
    - Ids are assigned from a monotonic counter starting at 1 and are never
      reused, even after a delete.  The counter is part of ``StoreState`` so
      that a reload continues where the previous process stopped.
    - Iteration order is insertion order; an update keeps the record's
      position.
    - ``update`` swaps in the new value only after the updater has produced
      it; a failing updater leaves the store untouched.
    - A failing builder does not consume an id.

Failure modes:
    - The concrete store's NotFoundError subclass from ``update``/``require``.
    - ValueError from ``restore`` when the state would reissue an id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Iterator, TypeVar

from qmx_kernel.exceptions import NotFoundError

E = TypeVar("E")


@dataclass(frozen=True, slots=True)
class StoreState(Generic[E]):
    """Exported contents of a store: entities in order plus the id counter."""

    entities: tuple[E, ...]
    next_id: int


class EntityStore(ABC, Generic[E]):
    """
    Abstract keyed store.

    Contract:
        Exclusively owns its entities.  Entities are immutable values, so
        handing them out never exposes store internals.
    """

    def __init__(self) -> None:
        self._entities: dict[int, E] = {}
        self._next_id = 1

    @abstractmethod
    def _identify(self, entity: E) -> int:
        """Id carried by the entity."""

    @abstractmethod
    def _build(self, builder: Any, entity_id: int) -> E:
        """Run the builder's terminal step for a newly assigned id."""

    @abstractmethod
    def _not_found(self, entity_id: int) -> NotFoundError:
        """Error raised for a missing id."""

    @property
    def next_id(self) -> int:
        return self._next_id

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __iter__(self) -> Iterator[tuple[int, E]]:
        return self.iterate()

    def insert(self, builder: Any) -> int:
        entity_id = self._next_id
        entity = self._build(builder, entity_id)
        self._entities[entity_id] = entity
        self._next_id = entity_id + 1
        return entity_id

    def get(self, entity_id: int) -> E | None:
        return self._entities.get(entity_id)

    def require(self, entity_id: int) -> E:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise self._not_found(entity_id)
        return entity

    def update(self, entity_id: int, updater: Any) -> E:
        current = self.require(entity_id)
        updated = updater.apply(current)
        self._entities[entity_id] = updated
        return updated

    def delete(self, entity_id: int) -> bool:
        return self._entities.pop(entity_id, None) is not None

    def iterate(self) -> Iterator[tuple[int, E]]:
        return iter(list(self._entities.items()))

    def values(self) -> list[E]:
        return list(self._entities.values())

    def export(self) -> StoreState[E]:
        return StoreState(entities=tuple(self._entities.values()), next_id=self._next_id)

    def restore(self, state: StoreState[E]) -> None:
        entities = {self._identify(entity): entity for entity in state.entities}
        highest = max(entities, default=0)
        if state.next_id <= highest:
            raise ValueError(
                f"{type(self).__name__}: next_id {state.next_id} would reissue id {highest}"
            )
        self._entities = entities
        self._next_id = state.next_id
