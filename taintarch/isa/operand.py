"""Operand value types shared by the disassembler, the semantics and the engine."""

from dataclasses import dataclass, replace
from enum import IntFlag
from typing import Optional

from taintarch.exceptions import UnsupportedSizeException
from taintarch.isa.register import RegisterDescriptor
from taintarch.types import ADDRESS_BITS, MAX_ACCESS_SIZE, Address, ConcreteValue


class Access(IntFlag):
    NONE = 0
    READ = 1
    WRITE = 2


def _check_value(value: Optional[int], bits: int, what: str) -> None:
    if value is None:
        return
    if not 0 <= value < (1 << bits):
        raise ValueError(f'Value {value:#x} does not fit {what} ({bits} bits)')


@dataclass(frozen=True)
class RegisterOperand:
    """A register reference plus an optional concrete value snapshot."""

    register: RegisterDescriptor
    concrete_value: Optional[ConcreteValue] = None
    access: Access = Access.NONE

    def __post_init__(self) -> None:
        _check_value(self.concrete_value, self.register.bit_size, self.register.name)

    @property
    def id(self) -> int:
        return self.register.id

    @property
    def name(self) -> str:
        return self.register.name

    @property
    def bit_size(self) -> int:
        return self.register.bit_size

    @property
    def size(self) -> int:
        return self.register.size

    def with_value(self, value: ConcreteValue) -> 'RegisterOperand':
        return replace(self, concrete_value=value)

    def __str__(self) -> str:
        return self.register.name.lower()


@dataclass(frozen=True)
class MemoryOperand:
    """A memory access of ``size`` bytes at ``address``.

    The base/index/segment registers and the displacement are only filled in when
    the operand comes out of the disassembler, ``address`` is then the concretized
    effective address.
    """

    address: Address
    size: int
    concrete_value: Optional[ConcreteValue] = None
    access: Access = Access.NONE
    base: Optional[RegisterDescriptor] = None
    index: Optional[RegisterDescriptor] = None
    scale: int = 1
    displacement: int = 0
    segment: Optional[RegisterDescriptor] = None

    def __post_init__(self) -> None:
        if not 1 <= self.size <= MAX_ACCESS_SIZE:
            raise UnsupportedSizeException(self.size)
        if not 0 <= self.address < (1 << ADDRESS_BITS):
            raise ValueError(f'Address {self.address:#x} out of range')
        _check_value(self.concrete_value, self.bit_size, 'memory operand')

    @property
    def bit_size(self) -> int:
        return self.size * 8

    def with_value(self, value: ConcreteValue) -> 'MemoryOperand':
        return replace(self, concrete_value=value)

    def __str__(self) -> str:
        return f'[{self.address:#x}]:{self.bit_size}'


@dataclass(frozen=True)
class ImmediateOperand:
    value: int
    size: int

    def __post_init__(self) -> None:
        # capstone hands out signed immediates
        object.__setattr__(self, 'value', self.value & ((1 << (self.size * 8)) - 1))

    @property
    def bit_size(self) -> int:
        return self.size * 8

    def __str__(self) -> str:
        return f'{self.value:#x}:{self.bit_size}'


Operand = RegisterOperand | MemoryOperand | ImmediateOperand
