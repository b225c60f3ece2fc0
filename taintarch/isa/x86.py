from capstone import CS_ARCH_X86, CS_MODE_32
from keystone.keystone_const import KS_ARCH_X86, KS_MODE_32
from unicorn import UC_ARCH_X86, UC_MODE_32

from . import x86_registers
from .isa import ISA


# x86 architecture
class X86(ISA):
    def __init__(self) -> None:
        self.name = 'X86'
        self.registers = x86_registers.build_x86_registers()

        self.pc_reg = self.registers.by_name('EIP')
        self.sp_reg = self.registers.by_name('ESP')
        self.flag_reg = self.registers.by_name('EFLAGS')

        # capstone spells the flags word FLAGS
        self.register_alias = {
            'FLAGS': 'EFLAGS',
            'RFLAGS': 'EFLAGS',
        }

        self.uc_arch = (UC_ARCH_X86, UC_MODE_32)
        self.ks_arch = (KS_ARCH_X86, KS_MODE_32)
        self.cs_arch = (CS_ARCH_X86, CS_MODE_32)

        self.addr_space = 32
        self.gpr_bits = 32

        # Linux user mode defaults
        self.default_state = {
            'EFLAGS': x86_registers.DEFAULT_EFLAGS,
            'CS': 0x23,
            'SS': 0x2B,
            'DS': 0x2B,
            'ES': 0x2B,
            'FS': 0,
            'GS': 0,
            'MXCSR': x86_registers.DEFAULT_MXCSR,
        }
