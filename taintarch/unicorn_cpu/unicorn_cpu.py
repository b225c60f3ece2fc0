"""Concrete execution of single instructions on unicorn.

The executor loads the concrete state of a backend into unicorn, steps one
instruction and records the resulting registers and memory stores back into the
backend. Memory is mapped page by page on demand and filled with the bytes the
backend knows about. Unknown bytes are zero inside the emulator, so an instruction
that reads one fails with ExecutionException and nothing is written back.
"""

import logging
from typing import Any

import unicorn as unc
from unicorn import unicorn_const as uc_const
from unicorn import x86_const

from taintarch.cpu.x86_cpu import X86Cpu
from taintarch.exceptions import ExecutionException
from taintarch.instruction import Instruction
from taintarch.isa.operand import MemoryOperand
from taintarch.isa.register import RegisterDescriptor, RegisterKind
from taintarch.types import CpuRegisterMap

logger = logging.getLogger(__name__)

_SYNC_KINDS = (RegisterKind.GPR, RegisterKind.PC, RegisterKind.FLAGS, RegisterKind.VECTOR, RegisterKind.VECTOR_CONTROL)
# widest register unicorn takes as a plain int
_MAX_SYNC_BITS = 128
# segment registers whose base takes part in address computation
_SEGMENT_BASES = ('FS', 'GS')


class UnicornExecutor:
    def __init__(self, cpu: X86Cpu, debug: bool = False) -> None:
        self.cpu = cpu
        self.arch = cpu.arch
        self.debug: bool = debug
        self.mu: unc.Uc = unc.Uc(self.arch.uc_arch[0], self.arch.uc_arch[1])
        self.pages: set[int] = set()
        self.mem_writes: list[tuple[int, int, int]] = []
        self.unknown_reads: list[tuple[int, int]] = []
        # bytes known during the current step that the cache does not hold
        self.step_known: set[int] = set()
        self.sync_regs: list[tuple[RegisterDescriptor, int]] = self._sync_registers()

        self._mem_invalid_hook_handle = self.mu.hook_add(
            uc_const.UC_HOOK_MEM_READ_UNMAPPED | uc_const.UC_HOOK_MEM_WRITE_UNMAPPED,
            self._invalid_mem,
        )
        self._mem_write_hook_handle = self.mu.hook_add(uc_const.UC_HOOK_MEM_WRITE, self._mem_write)
        self._mem_read_hook_handle = self.mu.hook_add(uc_const.UC_HOOK_MEM_READ, self._mem_read)

    def _sync_registers(self) -> list[tuple[RegisterDescriptor, int]]:
        """Pick, for every parent, the widest view unicorn can read and write."""
        sync_regs = []
        for parent in sorted(self.arch.registers.parents(), key=lambda reg: reg.id):
            if parent.kind not in _SYNC_KINDS:
                continue
            candidates = [parent] + sorted(self.arch.registers.children(parent.id), key=lambda reg: -reg.bit_size)
            for reg in candidates:
                uc_reg = getattr(x86_const, f'UC_X86_REG_{reg.name}', None)
                if reg.bit_low == 0 and reg.bit_size <= _MAX_SYNC_BITS and uc_reg is not None:
                    sync_regs.append((reg, uc_reg))
                    break
            else:
                logger.debug(f'No unicorn register for {parent.name}')
        for name in _SEGMENT_BASES:
            reg = self.arch.find_reg(name)
            uc_reg = getattr(x86_const, f'UC_X86_REG_{name}_BASE', None)
            if reg is not None and uc_reg is not None:
                sync_regs.append((reg, uc_reg))
        return sync_regs

    def _invalid_mem(
        self,
        uc: Any,  # noqa: ARG002
        access: int,  # noqa: ARG002
        address: int,
        size: int,
        value: int,  # noqa: ARG002
        user_data: Any,  # noqa: ARG002
    ) -> bool:
        self.map_range(address, size)
        return True

    def _mem_write(
        self,
        uc: Any,  # noqa: ARG002
        access: int,  # noqa: ARG002
        address: int,
        size: int,
        value: int,
        user_data: Any,  # noqa: ARG002
    ) -> bool:
        # unicorn reports signed values
        self.mem_writes.append((address, size, value & ((1 << (size * 8)) - 1)))
        self.step_known.update(range(address, address + size))
        return True

    def _mem_read(
        self,
        uc: Any,  # noqa: ARG002
        access: int,  # noqa: ARG002
        address: int,
        size: int,
        value: int,  # noqa: ARG002
        user_data: Any,  # noqa: ARG002
    ) -> None:
        for byte_address in range(address, address + size):
            if byte_address not in self.step_known and self.cpu.get_last_memory_value(byte_address) is None:
                self.unknown_reads.append((address, size))
                return

    def map_range(self, address: int, size: int) -> None:
        page_mask = ~(self.arch.page_size - 1)
        first_page = address & page_mask
        last_page = (address + max(size, 1) - 1) & page_mask
        for page_address in range(first_page, last_page + 1, self.arch.page_size):
            if page_address in self.pages:
                continue
            self.mu.mem_map(page_address, self.arch.page_size)
            self.pages.add(page_address)
            known = bytearray(self.arch.page_size)
            for offset in range(self.arch.page_size):
                byte = self.cpu.get_last_memory_value(page_address + offset)
                if byte is not None:
                    known[offset] = byte
            self.mu.mem_write(page_address, bytes(known))

    def clear_page(self) -> None:
        for page_address in self.pages:
            self.mu.mem_unmap(page_address, self.arch.page_size)
        self.pages.clear()

    def get_cpu_state(self) -> CpuRegisterMap:
        result = CpuRegisterMap()
        for reg, _ in self.sync_regs:
            result[reg.parent_id] = self.cpu.get_last_register_value(reg.parent_id)
        return result

    def _load_registers(self) -> None:
        for reg, uc_reg in self.sync_regs:
            self.mu.reg_write(uc_reg, self.cpu.get_last_register_value(reg.id))

    def _store_registers(self) -> None:
        for reg, uc_reg in self.sync_regs:
            self.cpu.set_last_register_value(reg.id, self.mu.reg_read(uc_reg) & reg.mask)

    def execute(self, inst: Instruction) -> tuple[CpuRegisterMap, CpuRegisterMap]:
        """Execute the first instruction of ``inst`` and return the register state before and after."""
        if not inst.opcode:
            raise ExecutionException(inst.address, 'no instruction bytes')

        self.clear_page()
        self.mem_writes.clear()
        self.unknown_reads.clear()
        self.step_known = set(range(inst.address, inst.address + len(inst.opcode)))
        self.cpu.set_last_register_value(self.arch.pc_reg.id, inst.address)
        self.map_range(inst.address, len(inst.opcode))
        self.mu.mem_write(inst.address, inst.opcode)
        self._load_registers()

        state_before = self.get_cpu_state()
        try:
            self.mu.emu_start(inst.address, inst.address + len(inst.opcode), count=1)
        except unc.UcError as e:
            if e.errno != uc_const.UC_ERR_FETCH_UNMAPPED:
                raise ExecutionException(inst.address, str(e)) from e

        if self.unknown_reads:
            address, size = self.unknown_reads[0]
            raise ExecutionException(inst.address, f'read of unknown memory at {address:#x} ({size} bytes)')

        self._store_registers()
        for address, size, value in self.mem_writes:
            self.cpu.set_last_memory_value(MemoryOperand(address, size, value))
        state_after = self.get_cpu_state()

        if self.debug:
            logger.info(f'{inst.address:#x}: {len(self.mem_writes)} memory writes')
            for reg, _ in self.sync_regs:
                if state_before[reg.parent_id] != state_after[reg.parent_id]:
                    logger.info(f'    {reg.name}: {state_before[reg.parent_id]:#x} -> {state_after[reg.parent_id]:#x}')
        return state_before, state_after
