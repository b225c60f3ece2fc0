"""x86 and x86-64 register sets.

Both tables are built from the same family descriptions. Flag bits sit at their
architectural position inside EFLAGS.
"""

from taintarch.isa.register import RegisterKind, RegisterTable

# parent suffix -> (16-bit view, 8-bit high view, 8-bit low view, 8-bit low view needing REX)
_LEGACY_GPRS: dict[str, tuple[str, str | None, str | None, str | None]] = {
    'AX': ('AX', 'AH', 'AL', None),
    'BX': ('BX', 'BH', 'BL', None),
    'CX': ('CX', 'CH', 'CL', None),
    'DX': ('DX', 'DH', 'DL', None),
    'SI': ('SI', None, None, 'SIL'),
    'DI': ('DI', None, None, 'DIL'),
    'BP': ('BP', None, None, 'BPL'),
    'SP': ('SP', None, None, 'SPL'),
}

EFLAGS_BITS: dict[str, int] = {
    'CF': 0,
    'PF': 2,
    'AF': 4,
    'ZF': 6,
    'SF': 7,
    'TF': 8,
    'IF': 9,
    'DF': 10,
    'OF': 11,
}

SEGMENT_REGS: tuple[str, ...] = ('CS', 'DS', 'ES', 'FS', 'GS', 'SS')

# reserved bit 1 and IF
DEFAULT_EFLAGS: int = 0x202
DEFAULT_MXCSR: int = 0x1F80


def _add_views(table: RegisterTable, parent: str, family: str, rex: bool) -> None:
    word, high, low, rex_low = _LEGACY_GPRS[family]
    table.add(word, 16, parent=parent)
    if high is not None:
        table.add(high, parent=parent, bit_high=15, bit_low=8)
    if low is not None:
        table.add(low, 8, parent=parent)
    if rex and rex_low is not None:
        table.add(rex_low, 8, parent=parent)


def _add_flags(table: RegisterTable, parent: str) -> None:
    for flag, bit in EFLAGS_BITS.items():
        table.add(flag, kind=RegisterKind.FLAG, parent=parent, bit_high=bit, bit_low=bit)


def _add_system(table: RegisterTable, gpr_bits: int) -> None:
    for seg in SEGMENT_REGS:
        # FS and GS hold the segment base, the others are plain selectors
        table.add(seg, gpr_bits if seg in ('FS', 'GS') else 16, kind=RegisterKind.SEGMENT)
    for n in range(16):
        table.add(f'CR{n}', gpr_bits, kind=RegisterKind.CONTROL)
    table.add('MXCSR', 32, kind=RegisterKind.VECTOR_CONTROL)


def build_x86_registers() -> RegisterTable:
    table = RegisterTable()
    for family in _LEGACY_GPRS:
        parent = f'E{family}'
        table.add(parent, 32)
        _add_views(table, parent, family, rex=False)

    table.add('EIP', 32, kind=RegisterKind.PC)
    table.add('IP', 16, kind=RegisterKind.PC, parent='EIP')

    table.add('EFLAGS', 32, kind=RegisterKind.FLAGS)
    _add_flags(table, 'EFLAGS')

    for n in range(8):
        table.add(f'YMM{n}', 256, kind=RegisterKind.VECTOR)
        table.add(f'XMM{n}', 128, kind=RegisterKind.VECTOR, parent=f'YMM{n}')

    _add_system(table, 32)
    return table.freeze()


def build_amd64_registers() -> RegisterTable:
    table = RegisterTable()
    for family in _LEGACY_GPRS:
        parent = f'R{family}'
        table.add(parent, 64)
        table.add(f'E{family}', 32, parent=parent)
        _add_views(table, parent, family, rex=True)

    for n in range(8, 16):
        parent = f'R{n}'
        table.add(parent, 64)
        table.add(f'R{n}D', 32, parent=parent)
        table.add(f'R{n}W', 16, parent=parent)
        table.add(f'R{n}B', 8, parent=parent)

    table.add('RIP', 64, kind=RegisterKind.PC)
    table.add('EIP', 32, kind=RegisterKind.PC, parent='RIP')
    table.add('IP', 16, kind=RegisterKind.PC, parent='RIP')

    table.add('RFLAGS', 64, kind=RegisterKind.FLAGS)
    table.add('EFLAGS', 32, kind=RegisterKind.FLAGS, parent='RFLAGS')
    _add_flags(table, 'RFLAGS')

    for n in range(16):
        table.add(f'ZMM{n}', 512, kind=RegisterKind.VECTOR)
        table.add(f'YMM{n}', 256, kind=RegisterKind.VECTOR, parent=f'ZMM{n}')
        table.add(f'XMM{n}', 128, kind=RegisterKind.VECTOR, parent=f'ZMM{n}')

    _add_system(table, 64)
    return table.freeze()
