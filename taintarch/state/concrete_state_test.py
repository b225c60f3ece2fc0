"""Tests for the concrete state cache."""

import pytest

from taintarch.isa.x86_registers import build_amd64_registers
from taintarch.state.concrete_state import ConcreteState, StateSnapshot


@pytest.fixture
def state():
    return ConcreteState(build_amd64_registers())


class TestMemory:
    """Test the sparse byte memory."""

    def test_unknown_is_not_zero(self, state):
        """Unmapped bytes read as None."""
        assert state.get_memory_byte(0x1000) is None
        state.set_memory_byte(0x1000, 0)
        assert state.get_memory_byte(0x1000) == 0

    def test_area_with_hole_is_unknown(self, state):
        """One unknown byte makes the whole area unknown."""
        state.set_memory_area(0x1000, [1, 2, 3])
        state.unmap(0x1001)
        assert state.get_memory_area(0x1000, 3) is None
        assert state.get_memory_area(0x1002, 1) == [3]

    def test_little_endian_value(self, state):
        """Multi-byte values are little-endian."""
        state.set_memory_value(0x2000, 4, 0xDEADBEEF)
        assert state.get_memory_area(0x2000, 4) == [0xEF, 0xBE, 0xAD, 0xDE]
        assert state.get_memory_value(0x2000, 4) == 0xDEADBEEF
        assert state.get_memory_value(0x2000, 8) is None

    def test_zero_sized_area(self, state):
        """An empty range is trivially mapped."""
        assert state.get_memory_area(0x3000, 0) == []
        assert state.is_mapped(0x3000, 0)

    def test_invalid_byte(self, state):
        """Only byte values are accepted."""
        with pytest.raises(ValueError):
            state.set_memory_byte(0x1000, 0x100)
        with pytest.raises(ValueError):
            state.set_memory_area(0x1000, [1, 256])
        assert not state.is_mapped(0x1000)

    def test_address_space_bounds(self, state):
        """Accesses past the end of the 64-bit address space are rejected."""
        state.set_memory_byte((1 << 64) - 1, 1)
        with pytest.raises(ValueError):
            state.get_memory_area((1 << 64) - 1, 2)
        with pytest.raises(ValueError):
            state.get_memory_byte(-1)

    def test_unmap_unknown_is_noop(self, state):
        """Unmapping bytes that were never mapped is fine."""
        state.unmap(0x5000, 16)
        assert state.memory == {}


class TestRegisters:
    """Test parent-granular register storage."""

    def test_unwritten_register_reads_zero(self, state):
        """A register that was never written reads as zero."""
        assert state.get_register(state.table.by_name('RAX')) == 0

    def test_storage_is_normalized_to_parents(self, state):
        """Writing AL stores into RAX."""
        state.set_register(state.table.by_name('AL'), 0x41)
        assert list(state.registers) == [state.table.by_name('RAX').id]

    def test_low_dword_fold(self, state):
        """Writing EAX keeps the upper half of RAX."""
        table = state.table
        state.set_register(table.by_name('RAX'), 0x1122334455667788)
        state.set_register(table.by_name('EAX'), 0x99AABBCC)
        assert state.get_register(table.by_name('RAX')) == 0x1122334499AABBCC

    def test_high_byte_fold(self, state):
        """AH sits at bits 15..8."""
        table = state.table
        state.set_register(table.by_name('RBX'), 0xFFFFFFFFFFFFFFFF)
        state.set_register(table.by_name('BH'), 0x12)
        assert state.get_register(table.by_name('RBX')) == 0xFFFFFFFFFFFF12FF
        assert state.get_register(table.by_name('BL')) == 0xFF
        assert state.get_register(table.by_name('BX')) == 0x12FF

    def test_flag_fold(self, state):
        """Flags are single bits of RFLAGS."""
        table = state.table
        state.set_register(table.by_name('RFLAGS'), 0x202)
        state.set_register(table.by_name('ZF'), 1)
        assert state.get_register(table.by_name('RFLAGS')) == 0x242
        assert state.get_register(table.by_name('IF')) == 1
        assert state.get_register(table.by_name('CF')) == 0

    def test_vector_fold(self, state):
        """XMM writes leave the upper bits of ZMM alone."""
        table = state.table
        high = ((1 << 384) - 1) << 128
        state.set_register(table.by_name('ZMM2'), high)
        state.set_register(table.by_name('XMM2'), 0xAB)
        assert state.get_register(table.by_name('ZMM2')) == high | 0xAB
        assert state.get_register(table.by_name('YMM2')) == (((1 << 128) - 1) << 128) | 0xAB

    def test_value_too_wide(self, state):
        """Values must fit the register."""
        with pytest.raises(ValueError):
            state.set_register(state.table.by_name('AX'), 0x10000)


class TestLifecycle:
    def test_clear(self, state):
        """clear empties registers and memory."""
        state.set_register(state.table.by_name('RAX'), 1)
        state.set_memory_byte(0x1000, 1)
        state.clear()
        assert state.registers == {}
        assert state.memory == {}

    def test_copy_is_independent(self, state):
        """A copy does not share maps with the original."""
        state.set_memory_byte(0x1000, 1)
        other = state.copy()
        other.set_memory_byte(0x1000, 2)
        other.set_register(state.table.by_name('RCX'), 3)
        assert state.get_memory_byte(0x1000) == 1
        assert state.get_register(state.table.by_name('RCX')) == 0

    def test_snapshot_round_trip(self, state):
        """Snapshots key registers by name and survive JSON."""
        table = state.table
        state.set_register(table.by_name('RAX'), 0x1122334455667788)
        state.set_register(table.by_name('XMM0'), (1 << 128) - 1)
        state.set_memory_area(0x1000, b'\xde\xad')
        snapshot = StateSnapshot.deserialize(state.snapshot('AMD64').serialize())
        assert snapshot.arch == 'AMD64'
        assert snapshot.registers == {'RAX': 0x1122334455667788, 'ZMM0': (1 << 128) - 1}
        assert snapshot.memory == {0x1000: 0xDE, 0x1001: 0xAD}

        other = ConcreteState(table)
        other.restore(snapshot)
        assert other.registers == state.registers
        assert other.memory == state.memory

    def test_restore_rejects_sub_registers(self, state):
        """Snapshots only hold parents."""
        with pytest.raises(ValueError, match='sub-register'):
            state.restore(StateSnapshot('AMD64', {'EAX': 1}, {}))
