from abc import ABC, abstractmethod
from typing import Optional

from taintarch.isa.register import RegisterDescriptor, RegisterTable


class ISA(ABC):
    """Abstract base class for ISA descriptions (X86, AMD64).

    An ISA owns the frozen register table of its architecture and the constants the
    external engines (capstone, unicorn, keystone) need to work with it.
    """

    name: str
    registers: RegisterTable
    cs_arch: tuple[int, int]
    uc_arch: tuple[int, int]
    ks_arch: tuple[int, int]
    addr_space: int
    gpr_bits: int
    page_size: int = 4096

    pc_reg: RegisterDescriptor
    sp_reg: RegisterDescriptor
    flag_reg: RegisterDescriptor

    # capstone names that do not match the table one to one
    register_alias: dict[str, str]
    # register name -> value set by CpuInterface.init
    default_state: dict[str, int]

    @abstractmethod
    def __init__(self) -> None:
        pass

    def name2reg(self, name: str) -> RegisterDescriptor:
        """Convert a register name (any case, capstone aliases allowed) to its descriptor."""
        name = name.upper()
        name = name.replace('(', '')
        name = name.replace(')', '')
        return self.registers.by_name(self.register_alias.get(name, name))

    def find_reg(self, name: str) -> Optional[RegisterDescriptor]:
        name = name.upper()
        return self.registers.find(self.register_alias.get(name, name))

    def create_full_reg(self, name: str) -> RegisterDescriptor:
        """Return the top-level register that ``name`` is a view into."""
        reg = self.name2reg(name)
        return self.registers.get(reg.parent_id)
