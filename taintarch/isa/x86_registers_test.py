"""Tests for the x86 and x86-64 register sets and ISA descriptions."""

import pytest

from taintarch.exceptions import InvalidRegisterException
from taintarch.isa.amd64 import AMD64
from taintarch.isa.register import RegisterKind
from taintarch.isa.x86 import X86
from taintarch.isa.x86_registers import EFLAGS_BITS, build_amd64_registers, build_x86_registers


class TestX86Registers:
    """Test the 32-bit register set."""

    def test_register_count(self):
        """GPR families, PC, flags, vectors, segments, control registers and MXCSR."""
        assert len(build_x86_registers()) == 75

    def test_gpr_views(self):
        """AX/AH/AL are views into EAX."""
        table = build_x86_registers()
        eax = table.by_name('EAX')
        assert eax.information == ('EAX', 31, 0, eax.id)
        assert table.by_name('AX').information == ('AX', 15, 0, eax.id)
        assert table.by_name('AH').information == ('AH', 15, 8, eax.id)
        assert table.by_name('AL').information == ('AL', 7, 0, eax.id)

    def test_no_rex_registers(self):
        """SIL and friends need a REX prefix, which 32-bit mode does not have."""
        table = build_x86_registers()
        for name in ('SIL', 'DIL', 'BPL', 'SPL', 'RAX', 'R8', 'ZMM0'):
            assert table.find(name) is None

    def test_flags_are_bits_of_eflags(self):
        """Each status flag sits at its architectural bit."""
        table = build_x86_registers()
        eflags = table.by_name('EFLAGS')
        for flag, bit in EFLAGS_BITS.items():
            reg = table.by_name(flag)
            assert reg.information == (flag, bit, bit, eflags.id)
            assert reg.kind is RegisterKind.FLAG

    def test_xmm_is_low_half_of_ymm(self):
        """XMM registers alias the low 128 bits of YMM."""
        table = build_x86_registers()
        assert table.by_name('XMM3').information == ('XMM3', 127, 0, table.by_name('YMM3').id)


class TestAMD64Registers:
    """Test the 64-bit register set."""

    def test_register_count(self):
        """All families of the 64-bit register file."""
        assert len(build_amd64_registers()) == 153

    def test_gpr_views(self):
        """RAX has 32, 16 and both 8-bit views."""
        table = build_amd64_registers()
        rax = table.by_name('RAX')
        assert [reg.name for reg in table.children(rax.id)] == ['EAX', 'AX', 'AH', 'AL']
        assert table.by_name('R15B').information == ('R15B', 7, 0, table.by_name('R15').id)
        assert table.by_name('SIL').parent_id == table.by_name('RSI').id

    def test_vector_views(self):
        """ZMM is the 512-bit parent of YMM and XMM."""
        table = build_amd64_registers()
        zmm = table.by_name('ZMM15')
        assert zmm.bit_size == 512
        assert table.by_name('YMM15').information == ('YMM15', 255, 0, zmm.id)
        assert table.by_name('XMM15').information == ('XMM15', 127, 0, zmm.id)

    def test_pc_views(self):
        """EIP and IP are views into RIP."""
        table = build_amd64_registers()
        rip = table.by_name('RIP')
        assert table.by_name('EIP').parent_id == rip.id
        assert table.by_name('IP').parent_id == rip.id

    def test_segment_bases_are_full_width(self):
        """FS and GS hold a 64-bit base, the other segments a 16-bit selector."""
        table = build_amd64_registers()
        assert table.by_name('FS').bit_size == 64
        assert table.by_name('GS').bit_size == 64
        assert table.by_name('CS').bit_size == 16

    def test_every_view_fits_its_parent(self):
        """Sub-register ranges lie inside the parent range."""
        table = build_amd64_registers()
        for reg in table:
            parent = table.get(reg.parent_id)
            assert parent.is_parent
            assert 0 <= reg.bit_low <= reg.bit_high <= parent.bit_high


class TestISA:
    """Test ISA descriptions."""

    def test_x86_constants(self):
        """32-bit ISA describes a 32-bit machine."""
        isa = X86()
        assert isa.name == 'X86'
        assert isa.gpr_bits == 32
        assert isa.addr_space == 32
        assert isa.pc_reg.name == 'EIP'
        assert isa.sp_reg.name == 'ESP'

    def test_amd64_constants(self):
        """64-bit ISA describes a 64-bit machine."""
        isa = AMD64()
        assert isa.gpr_bits == 64
        assert isa.pc_reg.name == 'RIP'
        assert isa.flag_reg.name == 'RFLAGS'

    @pytest.mark.parametrize(('isa', 'expected'), [(X86(), 'EFLAGS'), (AMD64(), 'RFLAGS')])
    def test_capstone_flags_alias(self, isa, expected):
        """capstone spells the flags register FLAGS."""
        assert isa.name2reg('flags').name == expected

    def test_name2reg_is_case_insensitive(self):
        """Register names are matched case-insensitively."""
        isa = AMD64()
        assert isa.name2reg('r8d') == isa.registers.by_name('R8D')

    def test_create_full_reg(self):
        """A view name resolves to its parent."""
        isa = AMD64()
        assert isa.create_full_reg('AH').name == 'RAX'
        assert isa.create_full_reg('XMM1').name == 'ZMM1'

    def test_unknown_name(self):
        """Unknown names raise, find_reg returns None."""
        isa = X86()
        with pytest.raises(InvalidRegisterException):
            isa.name2reg('ST0')
        assert isa.find_reg('ST0') is None
