"""
Thin Capstone wrapper used by the CPU backends.
"""

import logging
from typing import Any

from capstone import CS_ARCH_X86, CS_MODE_32, CS_MODE_64, Cs, CsError  # type: ignore[import-untyped]

from taintarch.exceptions import ParseInsnException, UnsupportedArchException

logger = logging.getLogger(__name__)


class CapstoneDisassembler:
    """Decodes the first instruction of a byte string with full operand details."""

    arch_mapping: dict[str, tuple[int, int]] = {
        'X86': (CS_ARCH_X86, CS_MODE_32),
        'AMD64': (CS_ARCH_X86, CS_MODE_64),
    }

    def __init__(self, arch_str: str) -> None:
        if arch_str not in self.arch_mapping:
            raise UnsupportedArchException(arch_str)
        self.arch_str: str = arch_str
        arch, mode = self.arch_mapping[arch_str]
        self.md: Cs = Cs(arch, mode)
        self.md.detail = True

    def disassemble(self, bytecode: bytes | str, address: int = 0x1000) -> Any:
        """Disassemble bytecode and return the Capstone instruction object."""
        # Convert hex string to bytes if needed
        if isinstance(bytecode, str):
            bytecode = bytes.fromhex(bytecode)

        try:
            insns = list(self.md.disasm(bytecode, address, 1))
        except CsError as e:
            logger.warning(f'capstone error at {address:#x}: {e}')
            raise ParseInsnException(address, bytecode) from e
        if not insns:
            logger.warning(f'Failed to disassemble {bytecode.hex()} at {address:#x}')
            raise ParseInsnException(address, bytecode)
        return insns[0]

    def reg_name(self, reg_id: int) -> str:
        """Get the upper-case register name from a Capstone register id."""
        name = self.md.reg_name(reg_id)
        return name.upper() if name else str(reg_id)
