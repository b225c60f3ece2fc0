import logging
from typing import Any, Optional

from taintarch.cpu.cpu import CPUFactory, CpuInterface
from taintarch.exceptions import UnsupportedArchException

logger = logging.getLogger(__name__)


class Architecture:
    """Holds the one active backend and forwards the CpuInterface calls to it."""

    def __init__(self, arch: Optional[str] = None) -> None:
        self._arch: Optional[str] = None
        self._cpu: Optional[CpuInterface] = None
        if arch is not None:
            self.set_architecture(arch)

    def set_architecture(self, arch: str) -> None:
        """Replace the active backend with a fresh, initialized one."""
        cpu = CPUFactory.create_cpu(arch)
        cpu.init()
        self._arch, self._cpu = arch, cpu
        logger.debug(f'Active architecture: {arch}')

    def get_architecture(self) -> Optional[str]:
        return self._arch

    def is_valid(self) -> bool:
        return self._cpu is not None

    @property
    def cpu(self) -> CpuInterface:
        if self._cpu is None:
            raise UnsupportedArchException()
        return self._cpu

    def __getattr__(self, name: str) -> Any:
        """Forward everything else to the active backend."""
        if name.startswith('_'):
            raise AttributeError(name)
        return getattr(self.cpu, name)
