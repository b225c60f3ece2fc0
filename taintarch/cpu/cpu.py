from abc import ABC, abstractmethod
from typing import Optional, Sequence

from taintarch.exceptions import UnsupportedArchException
from taintarch.instruction import Instruction
from taintarch.isa.operand import MemoryOperand, RegisterOperand
from taintarch.isa.register import RegisterDescriptor
from taintarch.types import Address, ByteValue, ConcreteValue, RegisterId, RegisterInformation


class CpuInterface(ABC):
    """Contract every architecture backend implements.

    The engine only talks to a backend through this interface. Register metadata
    is fixed when the backend is built, ``init`` and ``clear`` only touch the
    concrete state.
    """

    @abstractmethod
    def init(self) -> None:
        """Set the default architectural state. Called once before first use."""

    @abstractmethod
    def clear(self) -> None:
        """Forget every concrete register and memory value."""

    @abstractmethod
    def is_flag(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a flag."""

    @abstractmethod
    def is_register(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a register (not a flag)."""

    @abstractmethod
    def is_register_valid(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is defined by this architecture."""

    @abstractmethod
    def is_gpr(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a general purpose register or one of its views."""

    @abstractmethod
    def is_segment(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a segment register."""

    @abstractmethod
    def is_control(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a control register."""

    @abstractmethod
    def is_vector(self, reg_id: RegisterId) -> bool:
        """Returns true if the reg_id is a vector register, a vector view or the vector control register."""

    @abstractmethod
    def get_register(self, name: str) -> RegisterDescriptor:
        """Look a register up by name, any case.

        Raises:
            InvalidRegisterException: no register has this name.
        """

    @abstractmethod
    def get_parent_register(self, reg_id: RegisterId) -> RegisterDescriptor:
        """Top-level register reg_id is a view into, itself for parents."""

    @abstractmethod
    def program_counter(self) -> RegisterDescriptor:
        pass

    @abstractmethod
    def stack_pointer(self) -> RegisterDescriptor:
        pass

    @abstractmethod
    def register_size(self) -> int:
        """Size in bytes of a general purpose register."""

    @abstractmethod
    def register_bit_size(self) -> int:
        """Size in bits of a general purpose register."""

    @abstractmethod
    def invalid_register(self) -> RegisterId:
        """Id that never satisfies is_register_valid."""

    @abstractmethod
    def number_of_registers(self) -> int:
        """Number of register ids, flags and sub-registers included."""

    @abstractmethod
    def get_register_information(self, reg_id: RegisterId) -> RegisterInformation:
        """Return (name, bit_high, bit_low, parent_id) of a valid register.

        Raises:
            InvalidRegisterException: reg_id is not valid.
        """

    @abstractmethod
    def get_all_registers(self) -> frozenset[RegisterDescriptor]:
        """Returns all registers."""

    @abstractmethod
    def get_parent_registers(self) -> frozenset[RegisterDescriptor]:
        """Returns all top-level registers."""

    @abstractmethod
    def disassembly(self, inst: Instruction) -> None:
        """Decode inst in place.

        Raises:
            ParseInsnException: the bytes do not decode, inst is left not disassembled.
        """

    @abstractmethod
    def build_semantics(self, inst: Instruction) -> None:
        """Attach the semantics of an already disassembled instruction.

        Raises:
            SemanticsException: inst was never disassembled.
        """

    @abstractmethod
    def get_last_memory_value(self, mem: Address | MemoryOperand) -> Optional[ConcreteValue]:
        """Last byte at an address, or the value of a memory operand. None when unknown."""

    @abstractmethod
    def get_last_memory_area_value(self, base_addr: Address, size: int) -> Optional[list[ByteValue]]:
        """Last bytes of a memory area, None if any of them is unknown."""

    @abstractmethod
    def get_last_register_value(self, reg: RegisterOperand | RegisterId) -> ConcreteValue:
        """Last concrete value of a register."""

    @abstractmethod
    def set_last_memory_value(self, mem: Address | MemoryOperand, value: Optional[ConcreteValue] = None) -> None:
        """Record a byte at an address, or the concrete value of a memory operand."""

    @abstractmethod
    def set_last_memory_area_value(
        self,
        base_addr: Address,
        values: Sequence[ByteValue] | bytes | bytearray | memoryview,
        size: Optional[int] = None,
    ) -> None:
        """Record the bytes of a memory area, optionally only the first ``size`` of them."""

    @abstractmethod
    def set_last_register_value(
        self,
        reg: RegisterOperand | RegisterId,
        value: Optional[ConcreteValue] = None,
    ) -> None:
        """Record the concrete value of a register, written through to its parent."""

    @abstractmethod
    def is_memory_mapped(self, base_addr: Address, size: int = 1) -> bool:
        """Returns true if every byte of [base_addr, base_addr + size) is known."""

    @abstractmethod
    def unmap_memory(self, base_addr: Address, size: int = 1) -> None:
        """Forget every byte of [base_addr, base_addr + size)."""

    @abstractmethod
    def save_state(self) -> str:
        """Serialize the concrete registers and memory to JSON."""

    @abstractmethod
    def load_state(self, data: str) -> None:
        """Replace the concrete state with one produced by save_state on the same architecture.

        Raises:
            ValueError: the snapshot belongs to another architecture or does not fit the register table.
        """


class CPUFactory:
    @staticmethod
    def create_cpu(arch: str) -> CpuInterface:
        if arch == 'X86':
            from taintarch.cpu.x86_cpu import X86Cpu  # noqa: PLC0415

            return X86Cpu()
        if arch == 'AMD64':
            from taintarch.cpu.x86_cpu import AMD64Cpu  # noqa: PLC0415

            return AMD64Cpu()

        raise UnsupportedArchException(arch)
