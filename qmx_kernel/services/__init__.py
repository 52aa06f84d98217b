"""Kernel services: the locked coordination facade over the stores."""

from qmx_kernel.services.manager import QmxManager

__all__ = ["QmxManager"]
