"""Unit tests for the operand value types."""

import pytest

from taintarch.exceptions import UnsupportedSizeException
from taintarch.isa.operand import Access, ImmediateOperand, MemoryOperand, RegisterOperand
from taintarch.isa.x86_registers import build_amd64_registers

REGISTERS = build_amd64_registers()


class TestRegisterOperand:
    def test_value_must_fit_register(self):
        """A concrete value is sized to the register width."""
        al = REGISTERS.by_name('AL')
        assert RegisterOperand(al, 0xFF).concrete_value == 0xFF
        with pytest.raises(ValueError):
            RegisterOperand(al, 0x100)
        with pytest.raises(ValueError):
            RegisterOperand(al, -1)

    def test_512_bit_value(self):
        """ZMM operands carry up to 512 bits."""
        zmm = REGISTERS.by_name('ZMM0')
        value = (1 << 512) - 1
        assert RegisterOperand(zmm, value).concrete_value == value

    def test_with_value_is_a_copy(self):
        """Operands are snapshots, with_value returns a new one."""
        op = RegisterOperand(REGISTERS.by_name('RAX'), access=Access.READ)
        other = op.with_value(42)
        assert op.concrete_value is None
        assert other.concrete_value == 42
        assert other.access is Access.READ
        assert other.name == 'RAX'


class TestMemoryOperand:
    def test_size_limits(self):
        """Memory accesses are 1 to 64 bytes wide."""
        assert MemoryOperand(0x1000, 64).bit_size == 512
        for size in (0, 65):
            with pytest.raises(UnsupportedSizeException):
                MemoryOperand(0x1000, size)

    def test_address_limits(self):
        """Addresses are 64-bit."""
        MemoryOperand((1 << 64) - 1, 1)
        with pytest.raises(ValueError):
            MemoryOperand(1 << 64, 1)

    def test_value_must_fit_size(self):
        """The concrete value matches the access size."""
        assert MemoryOperand(0x1000, 2, 0xFFFF).concrete_value == 0xFFFF
        with pytest.raises(ValueError):
            MemoryOperand(0x1000, 2, 0x10000)


class TestImmediateOperand:
    def test_negative_immediate_is_masked(self):
        """capstone hands out signed immediates, they are stored as unsigned."""
        assert ImmediateOperand(-1, 4).value == 0xFFFFFFFF
        assert ImmediateOperand(0x10, 1).bit_size == 8
