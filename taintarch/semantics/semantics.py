"""Semantic lifting collaborators.

A backend hands every disassembled instruction to a SemanticsBuilder. The symbolic
semantics of individual instructions live outside this package, the default
builder only records which concrete state an instruction touches.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from taintarch.instruction import Instruction
from taintarch.isa.operand import Access, MemoryOperand, RegisterOperand
from taintarch.isa.register import RegisterDescriptor

if TYPE_CHECKING:
    from taintarch.cpu.cpu import CpuInterface

logger = logging.getLogger(__name__)


class SemanticsBuilder(ABC):
    @abstractmethod
    def build(self, cpu: 'CpuInterface', inst: Instruction) -> Any:
        """Lift a disassembled instruction, the result is attached to ``inst.semantics``."""


@dataclass
class InstructionEffects:
    """Concrete state an instruction reads and writes."""

    register_reads: list[RegisterOperand] = field(default_factory=list)
    register_writes: list[RegisterDescriptor] = field(default_factory=list)
    loads: list[MemoryOperand] = field(default_factory=list)
    stores: list[MemoryOperand] = field(default_factory=list)

    @property
    def unknown_loads(self) -> list[MemoryOperand]:
        """Loads with no recorded concrete value, to be made symbolic by the caller."""
        return [mem for mem in self.loads if mem.concrete_value is None]


class AccessSemantics(SemanticsBuilder):
    """Concretizes every register and memory read of an instruction."""

    def build(self, cpu: 'CpuInterface', inst: Instruction) -> InstructionEffects:
        effects = InstructionEffects()

        for reg in sorted(inst.registers_read, key=lambda r: r.id):
            value = cpu.get_last_register_value(reg.id)
            effects.register_reads.append(RegisterOperand(reg, value, Access.READ))
        effects.register_writes = sorted(inst.registers_written, key=lambda r: r.id)

        for operand in inst.operands:
            if not isinstance(operand, MemoryOperand):
                continue
            if operand.access & Access.READ:
                value = cpu.get_last_memory_value(operand)
                effects.loads.append(operand if value is None else operand.with_value(value))
            if operand.access & Access.WRITE:
                effects.stores.append(operand)

        logger.debug(
            f'{inst}: {len(effects.register_reads)} reg reads, {len(effects.register_writes)} reg writes, '
            f'{len(effects.loads)} loads ({len(effects.unknown_loads)} unknown), {len(effects.stores)} stores'
        )
        return effects
