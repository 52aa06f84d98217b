"""Cash store: owns every ``Cash`` record keyed by ``cash_id``."""

from __future__ import annotations

from qmx_kernel.domain.builders import CashBuilder
from qmx_kernel.domain.cash import Cash
from qmx_kernel.domain.clock import Clock, SystemClock
from qmx_kernel.exceptions import CashNotFoundError
from qmx_kernel.stores.base import EntityStore


class CashStore(EntityStore[Cash]):
    """
    Cash records in creation order.

    The store stamps ``created_at`` from its clock when a record is built.
    """

    def __init__(self, clock: Clock | None = None):
        super().__init__()
        self._clock = clock or SystemClock()

    def _identify(self, entity: Cash) -> int:
        return entity.cash_id

    def _build(self, builder: CashBuilder, entity_id: int) -> Cash:
        return builder.build(entity_id, self._clock.now())

    def _not_found(self, entity_id: int) -> CashNotFoundError:
        return CashNotFoundError(entity_id)

    def for_student(self, student_id: int) -> list[Cash]:
        return [cash for cash in self._entities.values() if cash.student_id == student_id]
