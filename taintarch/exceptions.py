"""Error taxonomy for taintarch.

Invalid register ids and semantics built before disassembly are programming
errors in the caller. Malformed instructions are recoverable and always carry the
address they were found at. Reading unknown memory is not an error at all, the
accessors return None instead.
"""

from typing import Optional


class InvalidRegisterException(Exception):
    def __init__(self, reg_id: object) -> None:
        super().__init__(reg_id)
        self.reg_id = reg_id

    def __str__(self) -> str:
        return f'[ERROR] invalid register id: {self.reg_id!r}'


class ParseInsnException(Exception):
    def __init__(self, address: int, opcode: bytes = b'') -> None:
        super().__init__(address, opcode)
        self.address = address
        self.opcode = opcode

    def __str__(self) -> str:
        return f'[ERROR] capstone disassemble cannot translate this instruction at {self.address:#x}: {self.opcode.hex()}'


class SemanticsException(Exception):
    def __init__(self, address: int) -> None:
        super().__init__(address)
        self.address = address

    def __str__(self) -> str:
        return f'[ERROR] cannot build semantics, instruction at {self.address:#x} was not disassembled!'


class UnsupportedArchException(Exception):
    def __init__(self, arch_str: Optional[str] = None) -> None:
        super().__init__(arch_str)
        self.arch_str = arch_str

    def __str__(self) -> str:
        if self.arch_str is None:
            return '[ERROR] no architecture selected!'
        return f'[ERROR] taintarch doesnt support this arch now: {self.arch_str}'


class UnsupportedSizeException(Exception):
    def __init__(self, size: int) -> None:
        super().__init__(size)
        self.size = size

    def __str__(self) -> str:
        return f'[ERROR] size unsupport error: {self.size}'


class AssembleException(Exception):
    def __init__(self, asm: str, reason: str = '') -> None:
        super().__init__(asm, reason)
        self.asm = asm
        self.reason = reason

    def __str__(self) -> str:
        return f'[ERROR] keystone failed to assemble instruction: {self.asm} {self.reason}'.rstrip()


class ExecutionException(Exception):
    def __init__(self, address: int, reason: str = '') -> None:
        super().__init__(address, reason)
        self.address = address
        self.reason = reason

    def __str__(self) -> str:
        return f'[ERROR] emulation failed at {self.address:#x}: {self.reason}'
