"""Entity stores: in-memory keyed collections owning all entity state."""

from qmx_kernel.stores.base import EntityStore, StoreState
from qmx_kernel.stores.cash_store import CashStore
from qmx_kernel.stores.student_store import StudentStore

__all__ = ["EntityStore", "StoreState", "StudentStore", "CashStore"]
