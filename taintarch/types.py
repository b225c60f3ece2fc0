"""Type aliases for taintarch.

This module contains all type aliases used throughout the codebase
to make complex type signatures more readable.
"""

from typing import TypeAlias

# Register ids are dense integers handed out by a RegisterTable, 0 is never valid
RegisterId: TypeAlias = int
Address: TypeAlias = int
ByteValue: TypeAlias = int

# Up to 512 bits, wide enough for ZMM registers and 64-byte memory accesses
ConcreteValue: TypeAlias = int

# Concrete register state keyed by parent register id
CpuRegisterMap: TypeAlias = dict[RegisterId, ConcreteValue]
# Concrete memory state, one byte per address
MemoryMap: TypeAlias = dict[Address, ByteValue]

# (name, bit_high, bit_low, parent_id)
RegisterInformation: TypeAlias = tuple[str, int, int, RegisterId]

MAX_VALUE_BITS: int = 512
MAX_ACCESS_SIZE: int = MAX_VALUE_BITS // 8
ADDRESS_BITS: int = 64
