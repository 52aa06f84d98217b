"""Student store: owns every ``Student`` keyed by ``student_id``."""

from __future__ import annotations

from qmx_kernel.domain.builders import StudentBuilder
from qmx_kernel.domain.student import Student
from qmx_kernel.exceptions import StudentNotFoundError
from qmx_kernel.stores.base import EntityStore


class StudentStore(EntityStore[Student]):
    def _identify(self, entity: Student) -> int:
        return entity.student_id

    def _build(self, builder: StudentBuilder, entity_id: int) -> Student:
        return builder.build(entity_id)

    def _not_found(self, entity_id: int) -> StudentNotFoundError:
        return StudentNotFoundError(entity_id)
