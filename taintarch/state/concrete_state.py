"""Concrete state cache: the sparse shadow of real registers and memory.

Memory is tracked byte by byte and a missing byte means unknown, never zero.
Registers are always stored at parent granularity, a sub-register access is a
bit-range view into the parent's stored value.
"""

import logging
from typing import Iterable, Optional

from taintarch.isa.register import RegisterDescriptor, RegisterTable
from taintarch.serialization import SerializableMixin
from taintarch.types import ADDRESS_BITS, Address, ByteValue, ConcreteValue, CpuRegisterMap, MemoryMap

logger = logging.getLogger(__name__)

_ADDRESS_LIMIT = 1 << ADDRESS_BITS


def _check_range(address: Address, size: int) -> None:
    if size < 0:
        raise ValueError(f'Negative size: {size}')
    if address < 0 or address + size > _ADDRESS_LIMIT:
        raise ValueError(f'Memory range [{address:#x}, +{size}) out of the address space')


def _check_byte(value: int) -> None:
    if not 0 <= value <= 0xFF:
        raise ValueError(f'Not a byte value: {value:#x}')


class StateSnapshot(SerializableMixin):
    """Portable copy of a concrete state, registers are keyed by name."""

    arch: str
    registers: dict[str, ConcreteValue]
    memory: MemoryMap

    def __init__(self, arch: str, registers: dict[str, ConcreteValue], memory: MemoryMap) -> None:
        self.arch = arch
        self.registers = registers
        self.memory = memory


class ConcreteState:
    """Last known concrete values of the registers and memory of one CPU."""

    def __init__(self, registers: RegisterTable) -> None:
        self.table = registers
        self.memory: MemoryMap = {}
        self.registers: CpuRegisterMap = {}

    def clear(self) -> None:
        self.memory.clear()
        self.registers.clear()

    def copy(self) -> 'ConcreteState':
        other = ConcreteState(self.table)
        other.memory = dict(self.memory)
        other.registers = dict(self.registers)
        return other

    # Memory

    def get_memory_byte(self, address: Address) -> Optional[ByteValue]:
        _check_range(address, 1)
        return self.memory.get(address)

    def set_memory_byte(self, address: Address, value: ByteValue) -> None:
        _check_range(address, 1)
        _check_byte(value)
        self.memory[address] = value

    def get_memory_area(self, address: Address, size: int) -> Optional[list[ByteValue]]:
        """Return ``size`` bytes from ``address``, or None if any of them is unknown."""
        _check_range(address, size)
        area: list[ByteValue] = []
        for addr in range(address, address + size):
            value = self.memory.get(addr)
            if value is None:
                return None
            area.append(value)
        return area

    def set_memory_area(self, address: Address, values: Iterable[ByteValue]) -> None:
        values = list(values)
        _check_range(address, len(values))
        for value in values:
            _check_byte(value)
        for offset, value in enumerate(values):
            self.memory[address + offset] = value

    def get_memory_value(self, address: Address, size: int) -> Optional[ConcreteValue]:
        """Little-endian value of ``size`` bytes, None if any byte is unknown."""
        area = self.get_memory_area(address, size)
        if area is None:
            return None
        return int.from_bytes(bytes(area), 'little')

    def set_memory_value(self, address: Address, size: int, value: ConcreteValue) -> None:
        if not 0 <= value < (1 << (size * 8)):
            raise ValueError(f'Value {value:#x} does not fit {size} bytes')
        self.set_memory_area(address, value.to_bytes(size, 'little'))

    def is_mapped(self, address: Address, size: int = 1) -> bool:
        _check_range(address, size)
        return all(addr in self.memory for addr in range(address, address + size))

    def unmap(self, address: Address, size: int = 1) -> None:
        _check_range(address, size)
        for addr in range(address, address + size):
            self.memory.pop(addr, None)

    # Registers

    def get_register(self, reg: RegisterDescriptor) -> ConcreteValue:
        parent_value = self.registers.get(reg.parent_id, 0)
        if reg.is_parent:
            return parent_value
        return (parent_value >> reg.bit_low) & reg.mask

    def set_register(self, reg: RegisterDescriptor, value: ConcreteValue) -> None:
        if not 0 <= value <= reg.mask:
            raise ValueError(f'Value {value:#x} does not fit {reg.name} ({reg.bit_size} bits)')
        if reg.is_parent:
            self.registers[reg.id] = value
            return
        parent_value = self.registers.get(reg.parent_id, 0)
        parent_value &= ~(reg.mask << reg.bit_low)
        parent_value |= value << reg.bit_low
        self.registers[reg.parent_id] = parent_value

    # Snapshots

    def snapshot(self, arch: str) -> StateSnapshot:
        registers = {self.table.get(reg_id).name: value for reg_id, value in self.registers.items()}
        return StateSnapshot(arch, registers, dict(self.memory))

    def restore(self, snapshot: StateSnapshot) -> None:
        registers: CpuRegisterMap = {}
        for name, value in snapshot.registers.items():
            reg = self.table.by_name(name)
            if not reg.is_parent:
                raise ValueError(f'Snapshot holds a sub-register: {name}')
            if not 0 <= value <= reg.mask:
                raise ValueError(f'Value {value:#x} does not fit {reg.name} ({reg.bit_size} bits)')
            registers[reg.id] = value
        self.clear()
        self.registers.update(registers)
        self.set_memory_area_sparse(snapshot.memory)
        logger.debug(f'Restored {len(self.registers)} registers and {len(self.memory)} memory bytes')

    def set_memory_area_sparse(self, memory: MemoryMap) -> None:
        for address, value in memory.items():
            self.set_memory_byte(address, value)
