from capstone import CS_ARCH_X86, CS_MODE_64
from keystone.keystone_const import KS_ARCH_X86, KS_MODE_64
from unicorn import UC_ARCH_X86, UC_MODE_64

from . import x86_registers
from .isa import ISA


# x64 architecture
class AMD64(ISA):
    def __init__(self) -> None:
        self.name = 'AMD64'
        self.registers = x86_registers.build_amd64_registers()

        self.pc_reg = self.registers.by_name('RIP')
        self.sp_reg = self.registers.by_name('RSP')
        self.flag_reg = self.registers.by_name('RFLAGS')

        self.register_alias = {
            'FLAGS': 'RFLAGS',
        }

        self.uc_arch = (UC_ARCH_X86, UC_MODE_64)
        self.ks_arch = (KS_ARCH_X86, KS_MODE_64)
        self.cs_arch = (CS_ARCH_X86, CS_MODE_64)

        self.addr_space = 64
        self.gpr_bits = 64

        # Linux user mode defaults
        self.default_state = {
            'RFLAGS': x86_registers.DEFAULT_EFLAGS,
            'CS': 0x33,
            'SS': 0x2B,
            'DS': 0,
            'ES': 0,
            'FS': 0,
            'GS': 0,
            'MXCSR': x86_registers.DEFAULT_MXCSR,
        }
