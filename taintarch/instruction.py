"""Instruction container handed to the CPU backends."""

from typing import Any, Optional

from taintarch.isa.operand import Operand
from taintarch.isa.register import RegisterDescriptor
from taintarch.types import Address


class Instruction:
    """Raw bytes at an address, plus what disassembly and semantics learn about them.

    Attributes:
        address: Address the instruction is located at.
        opcode: Raw instruction bytes, only the first instruction is decoded.
        thread_id: Thread the instruction was executed by.
        size: Length in bytes of the decoded instruction.
        operands: Resolved operand list, in capstone order.
        registers_read: Parent registers of every register read, explicit or implicit.
        registers_written: Parent registers of every register written, explicit or implicit.
        semantics: Whatever the semantics builder attached.
    """

    def __init__(self, address: Address = 0, opcode: bytes | bytearray | str = b'', thread_id: int = 0) -> None:
        if isinstance(opcode, str):
            opcode = bytes.fromhex(opcode)
        self.address: Address = address
        self.opcode: bytes = bytes(opcode)
        self.thread_id: int = thread_id
        self.reset()

    def reset(self) -> None:
        """Drop everything learned from disassembly and semantics."""
        self.size: int = 0
        self.mnemonic: str = ''
        self.op_str: str = ''
        self.operands: list[Operand] = []
        self.registers_read: set[RegisterDescriptor] = set()
        self.registers_written: set[RegisterDescriptor] = set()
        self.is_branch: bool = False
        self.is_control_flow: bool = False
        self.semantics: Optional[Any] = None
        self.is_disassembled: bool = False

    @property
    def disassembly(self) -> str:
        if not self.op_str:
            return self.mnemonic
        return f'{self.mnemonic} {self.op_str}'

    @property
    def next_address(self) -> Address:
        return self.address + self.size

    def __str__(self) -> str:
        if not self.is_disassembled:
            return f'{self.address:#x}: {self.opcode.hex()}'
        return f'{self.address:#x}: {self.disassembly}'

    def __repr__(self) -> str:
        return f'Instruction({self})'
