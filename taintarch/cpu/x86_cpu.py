"""x86 and x86-64 backends of the CpuInterface contract."""

import logging
from typing import Any, Optional, Sequence

from capstone import (  # type: ignore[import-untyped]
    CS_AC_READ,
    CS_AC_WRITE,
    CS_GRP_CALL,
    CS_GRP_INT,
    CS_GRP_IRET,
    CS_GRP_JUMP,
    CS_GRP_RET,
)
from capstone.x86 import X86_OP_IMM, X86_OP_MEM, X86_OP_REG, X86_REG_INVALID  # type: ignore[import-untyped]

from taintarch.cpu.cpu import CpuInterface
from taintarch.disassembler.capstone_disassembler import CapstoneDisassembler
from taintarch.exceptions import (
    InvalidRegisterException,
    ParseInsnException,
    SemanticsException,
    UnsupportedSizeException,
)
from taintarch.instruction import Instruction
from taintarch.isa.amd64 import AMD64
from taintarch.isa.isa import ISA
from taintarch.isa.operand import Access, ImmediateOperand, MemoryOperand, Operand, RegisterOperand
from taintarch.isa.register import ID_REG_INVALID, RegisterDescriptor, RegisterKind
from taintarch.isa.x86 import X86
from taintarch.semantics.semantics import AccessSemantics, SemanticsBuilder
from taintarch.state.concrete_state import ConcreteState, StateSnapshot
from taintarch.types import Address, ByteValue, ConcreteValue, RegisterId, RegisterInformation

logger = logging.getLogger(__name__)

_CONTROL_FLOW_GROUPS = (CS_GRP_JUMP, CS_GRP_CALL, CS_GRP_RET, CS_GRP_IRET, CS_GRP_INT)


class X86Cpu(CpuInterface):
    """32-bit x86 backend, also the shared implementation of the x86-64 one."""

    isa_class: type[ISA] = X86

    def __init__(self, semantics: Optional[SemanticsBuilder] = None) -> None:
        self.arch: ISA = self.isa_class()
        self.registers = self.arch.registers
        self.state = ConcreteState(self.registers)
        self.semantics: SemanticsBuilder = semantics if semantics is not None else AccessSemantics()
        self.disassembler = CapstoneDisassembler(self.arch.name)

        self._all_registers: frozenset[RegisterDescriptor] = frozenset(self.registers)
        self._parent_registers: frozenset[RegisterDescriptor] = frozenset(self.registers.parents())
        # capstone register id -> descriptor, None for registers the table does not model
        self._cs_registers: dict[int, Optional[RegisterDescriptor]] = {}

    def __str__(self) -> str:
        return f'{type(self).__name__}({self.arch.name})'

    # Lifecycle

    def init(self) -> None:
        for name, value in self.arch.default_state.items():
            self.state.set_register(self.registers.by_name(name), value)
        logger.debug(f'{self}: default state set for {len(self.arch.default_state)} registers')

    def clear(self) -> None:
        self.state.clear()

    # Register taxonomy

    def _register(self, reg: RegisterOperand | RegisterId) -> RegisterDescriptor:
        if isinstance(reg, RegisterOperand):
            desc = self.registers.get(reg.id)
            if desc != reg.register:
                raise InvalidRegisterException(reg.name)
            return desc
        return self.registers.get(reg)

    def _kind(self, reg_id: RegisterId) -> Optional[RegisterKind]:
        if reg_id not in self.registers:
            return None
        return self.registers.get(reg_id).kind

    def is_flag(self, reg_id: RegisterId) -> bool:
        return self._kind(reg_id) is RegisterKind.FLAG

    def is_register(self, reg_id: RegisterId) -> bool:
        kind = self._kind(reg_id)
        return kind is not None and kind is not RegisterKind.FLAG

    def is_register_valid(self, reg_id: RegisterId) -> bool:
        return reg_id in self.registers

    def is_gpr(self, reg_id: RegisterId) -> bool:
        return self._kind(reg_id) is RegisterKind.GPR

    def is_segment(self, reg_id: RegisterId) -> bool:
        return self._kind(reg_id) is RegisterKind.SEGMENT

    def is_control(self, reg_id: RegisterId) -> bool:
        return self._kind(reg_id) is RegisterKind.CONTROL

    def is_vector(self, reg_id: RegisterId) -> bool:
        return self._kind(reg_id) in (RegisterKind.VECTOR, RegisterKind.VECTOR_CONTROL)

    def register_size(self) -> int:
        return self.arch.gpr_bits // 8

    def register_bit_size(self) -> int:
        return self.arch.gpr_bits

    def invalid_register(self) -> RegisterId:
        return ID_REG_INVALID

    def number_of_registers(self) -> int:
        return len(self.registers)

    def get_register_information(self, reg_id: RegisterId) -> RegisterInformation:
        return self.registers.get(reg_id).information

    def get_all_registers(self) -> frozenset[RegisterDescriptor]:
        return self._all_registers

    def get_parent_registers(self) -> frozenset[RegisterDescriptor]:
        return self._parent_registers

    def get_register(self, name: str) -> RegisterDescriptor:
        return self.arch.name2reg(name)

    def get_parent_register(self, reg_id: RegisterId) -> RegisterDescriptor:
        return self.registers.parent_of(reg_id)

    def program_counter(self) -> RegisterDescriptor:
        return self.arch.pc_reg

    def stack_pointer(self) -> RegisterDescriptor:
        return self.arch.sp_reg

    # Disassembly and semantics

    def _cs_register(self, cs_reg: int) -> Optional[RegisterDescriptor]:
        if cs_reg not in self._cs_registers:
            reg = self.arch.find_reg(self.disassembler.reg_name(cs_reg))
            if reg is None:
                logger.debug(f'{self}: capstone register {self.disassembler.reg_name(cs_reg)} is not modeled')
            self._cs_registers[cs_reg] = reg
        return self._cs_registers[cs_reg]

    def _effective_address(self, mem: Any, next_address: Address) -> Address:
        address = mem.disp
        if mem.base != X86_REG_INVALID:
            base = self._cs_register(mem.base)
            if base is not None and base.kind is RegisterKind.PC:
                address += next_address
            elif base is not None:
                address += self.state.get_register(base)
        if mem.index != X86_REG_INVALID:
            index = self._cs_register(mem.index)
            if index is not None:
                address += self.state.get_register(index) * mem.scale
        if mem.segment != X86_REG_INVALID:
            segment = self._cs_register(mem.segment)
            # only FS and GS carry a base in user mode
            if segment is not None and segment.name in ('FS', 'GS'):
                address += self.state.get_register(segment)
        return address & ((1 << self.arch.addr_space) - 1)

    def _memory_operand(self, inst: Instruction, op: Any, access: Access, next_address: Address) -> MemoryOperand:
        mem = op.mem
        try:
            return MemoryOperand(
                self._effective_address(mem, next_address),
                op.size,
                access=access,
                base=self._cs_register(mem.base) if mem.base != X86_REG_INVALID else None,
                index=self._cs_register(mem.index) if mem.index != X86_REG_INVALID else None,
                scale=mem.scale,
                displacement=mem.disp,
                segment=self._cs_register(mem.segment) if mem.segment != X86_REG_INVALID else None,
            )
        except UnsupportedSizeException as e:
            logger.warning(f'{self}: memory operand at {inst.address:#x} not representable, {e}')
            raise ParseInsnException(inst.address, inst.opcode) from e

    def _operands(self, inst: Instruction, insn: Any, next_address: Address) -> list[Operand]:
        operands: list[Operand] = []
        for op in insn.operands:
            access = Access.NONE
            if op.access & CS_AC_READ:
                access |= Access.READ
            if op.access & CS_AC_WRITE:
                access |= Access.WRITE

            if op.type == X86_OP_REG:
                reg = self._cs_register(op.reg)
                if reg is None:
                    # operand positions must match capstone's
                    name = self.disassembler.reg_name(op.reg)
                    logger.warning(f'{self}: operand {name} at {inst.address:#x} is not modeled')
                    raise ParseInsnException(inst.address, inst.opcode)
                operands.append(RegisterOperand(reg, access=access))
            elif op.type == X86_OP_IMM:
                operands.append(ImmediateOperand(op.imm, op.size or self.register_size()))
            elif op.type == X86_OP_MEM:
                operands.append(self._memory_operand(inst, op, access, next_address))
        return operands

    def _parents(self, cs_regs: Sequence[int]) -> set[RegisterDescriptor]:
        parents = set()
        for cs_reg in cs_regs:
            reg = self._cs_register(cs_reg)
            if reg is not None:
                parents.add(self.registers.parent_of(reg.id))
        return parents

    def disassembly(self, inst: Instruction) -> None:
        inst.reset()
        insn = self.disassembler.disassemble(inst.opcode, inst.address)

        next_address = inst.address + insn.size
        operands = self._operands(inst, insn, next_address)
        regs_read, regs_write = insn.regs_access()

        # populate only once everything decoded
        inst.size = insn.size
        inst.mnemonic = insn.mnemonic
        inst.op_str = insn.op_str
        inst.operands = operands
        inst.registers_read = self._parents(regs_read)
        inst.registers_written = self._parents(regs_write)
        inst.is_branch = insn.group(CS_GRP_JUMP)
        inst.is_control_flow = any(insn.group(group) for group in _CONTROL_FLOW_GROUPS)
        inst.is_disassembled = True
        logger.debug(f'{self}: {inst}')

    def build_semantics(self, inst: Instruction) -> None:
        if not inst.is_disassembled:
            raise SemanticsException(inst.address)
        inst.semantics = self.semantics.build(self, inst)

    # Concrete state

    def get_last_memory_value(self, mem: Address | MemoryOperand) -> Optional[ConcreteValue]:
        if isinstance(mem, MemoryOperand):
            return self.state.get_memory_value(mem.address, mem.size)
        return self.state.get_memory_byte(mem)

    def get_last_memory_area_value(self, base_addr: Address, size: int) -> Optional[list[ByteValue]]:
        return self.state.get_memory_area(base_addr, size)

    def get_last_register_value(self, reg: RegisterOperand | RegisterId) -> ConcreteValue:
        return self.state.get_register(self._register(reg))

    def set_last_memory_value(self, mem: Address | MemoryOperand, value: Optional[ConcreteValue] = None) -> None:
        if isinstance(mem, MemoryOperand):
            if value is None:
                value = mem.concrete_value
            if value is None:
                raise ValueError(f'No concrete value to record for {mem}')
            self.state.set_memory_value(mem.address, mem.size, value)
            return
        if value is None:
            raise ValueError(f'No concrete value to record at {mem:#x}')
        self.state.set_memory_byte(mem, value)

    def set_last_memory_area_value(
        self,
        base_addr: Address,
        values: Sequence[ByteValue] | bytes | bytearray | memoryview,
        size: Optional[int] = None,
    ) -> None:
        if size is None:
            self.state.set_memory_area(base_addr, values)
            return
        area = list(values[:size])
        if len(area) != size:
            raise ValueError(f'Expected {size} bytes, got {len(area)}')
        self.state.set_memory_area(base_addr, area)

    def set_last_register_value(
        self,
        reg: RegisterOperand | RegisterId,
        value: Optional[ConcreteValue] = None,
    ) -> None:
        desc = self._register(reg)
        if value is None and isinstance(reg, RegisterOperand):
            value = reg.concrete_value
        if value is None:
            raise ValueError(f'No concrete value to record for {desc.name}')
        self.state.set_register(desc, value)

    def is_memory_mapped(self, base_addr: Address, size: int = 1) -> bool:
        return self.state.is_mapped(base_addr, size)

    def unmap_memory(self, base_addr: Address, size: int = 1) -> None:
        self.state.unmap(base_addr, size)

    # Snapshots

    def save_state(self) -> str:
        return self.state.snapshot(self.arch.name).serialize()

    def load_state(self, data: str) -> None:
        snapshot = StateSnapshot.deserialize(data)
        if snapshot.arch != self.arch.name:
            raise ValueError(f'Snapshot is for {snapshot.arch}, not {self.arch.name}')
        self.state.restore(snapshot)


class AMD64Cpu(X86Cpu):
    """x86-64 backend."""

    isa_class = AMD64
