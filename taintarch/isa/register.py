"""Register descriptors and the per-architecture register table.

A descriptor is immutable metadata. Sub-registers are described by the bit range
they cover inside their parent, so AH is ``RAX[15:8]`` on x86-64 and a top-level
register is its own parent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional

from taintarch.exceptions import InvalidRegisterException
from taintarch.serialization import SerializableMixin
from taintarch.types import MAX_VALUE_BITS, RegisterId, RegisterInformation

ID_REG_INVALID: RegisterId = 0


class RegisterKind(Enum):
    GPR = 'gpr'
    PC = 'pc'
    FLAGS = 'flags'  # the whole flags word
    FLAG = 'flag'  # one status bit inside the flags word
    SEGMENT = 'segment'
    CONTROL = 'control'
    VECTOR = 'vector'
    VECTOR_CONTROL = 'vector_control'


@dataclass(frozen=True)
class RegisterDescriptor(SerializableMixin):
    """Metadata of one architectural register.

    Attributes:
        id: Stable id within the owning RegisterTable.
        name: Upper-case register name.
        bit_high: Highest bit covered inside the parent (inclusive).
        bit_low: Lowest bit covered inside the parent (inclusive).
        parent_id: Id of the top-level register, equal to ``id`` for parents.
        kind: Register class.
    """

    id: RegisterId
    name: str
    bit_high: int
    bit_low: int
    parent_id: RegisterId
    kind: RegisterKind = RegisterKind.GPR

    @property
    def bit_size(self) -> int:
        return self.bit_high - self.bit_low + 1

    @property
    def size(self) -> int:
        return (self.bit_size + 7) // 8

    @property
    def mask(self) -> int:
        return (1 << self.bit_size) - 1

    @property
    def is_parent(self) -> bool:
        return self.id == self.parent_id

    @property
    def information(self) -> RegisterInformation:
        return (self.name, self.bit_high, self.bit_low, self.parent_id)

    def __repr__(self) -> str:
        return f'{self.name}:{self.bit_size} bv[{self.bit_high}..{self.bit_low}]'


class RegisterTable:
    """Append-only arena of register descriptors addressed by id.

    Ids are handed out in insertion order starting at 1. Descriptors are shared,
    callers only ever get views into the table.
    """

    def __init__(self) -> None:
        self._registers: list[Optional[RegisterDescriptor]] = [None]  # slot 0 is ID_REG_INVALID
        self._by_name: dict[str, RegisterDescriptor] = {}
        self._children: dict[RegisterId, list[RegisterDescriptor]] = {}
        self._frozen: bool = False

    def add(
        self,
        name: str,
        bit_size: Optional[int] = None,
        kind: RegisterKind = RegisterKind.GPR,
        parent: Optional[str] = None,
        bit_high: Optional[int] = None,
        bit_low: int = 0,
    ) -> RegisterDescriptor:
        """Add a top-level register (``bit_size``) or a view into ``parent``.

        A view covers ``bit_high..bit_low`` of its parent. When only
        ``bit_size`` is given for a view, it starts at ``bit_low``.
        """
        if self._frozen:
            raise RuntimeError('Register table is frozen')
        name = name.upper()
        if name in self._by_name:
            raise ValueError(f'Duplicate register: {name}')

        reg_id = len(self._registers)
        if parent is None:
            if bit_size is None or bit_size <= 0:
                raise ValueError(f'Top-level register {name} needs a positive bit size')
            bit_high, bit_low, parent_id = bit_size - 1, 0, reg_id
            parent_bits = bit_size
        else:
            parent_reg = self.by_name(parent)
            if not parent_reg.is_parent:
                raise ValueError(f'{parent_reg.name} is not a top-level register')
            if bit_high is None:
                if bit_size is None:
                    raise ValueError(f'Sub-register {name} needs a bit range')
                bit_high = bit_low + bit_size - 1
            parent_id = parent_reg.id
            parent_bits = parent_reg.bit_size

        if not 0 <= bit_low <= bit_high < parent_bits or parent_bits > MAX_VALUE_BITS:
            raise ValueError(f'Invalid bit range [{bit_high}:{bit_low}] for {name}')

        reg = RegisterDescriptor(reg_id, name, bit_high, bit_low, parent_id, kind)
        self._registers.append(reg)
        self._by_name[name] = reg
        self._children.setdefault(parent_id, [])
        if parent is not None:
            self._children[parent_id].append(reg)
        return reg

    def freeze(self) -> 'RegisterTable':
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, reg_id: RegisterId) -> RegisterDescriptor:
        """Return the descriptor for ``reg_id`` or raise InvalidRegisterException."""
        if not isinstance(reg_id, int) or isinstance(reg_id, bool) or not 0 < reg_id < len(self._registers):
            raise InvalidRegisterException(reg_id)
        reg = self._registers[reg_id]
        assert reg is not None
        return reg

    def by_name(self, name: str) -> RegisterDescriptor:
        try:
            return self._by_name[name.upper()]
        except KeyError:
            raise InvalidRegisterException(name) from None

    def find(self, name: str) -> Optional[RegisterDescriptor]:
        return self._by_name.get(name.upper())

    def parent_of(self, reg_id: RegisterId) -> RegisterDescriptor:
        return self.get(self.get(reg_id).parent_id)

    def children(self, parent_id: RegisterId) -> list[RegisterDescriptor]:
        """Sub-registers of ``parent_id``, not including the parent itself."""
        return list(self._children.get(self.get(parent_id).id, []))

    def parents(self) -> list[RegisterDescriptor]:
        return [reg for reg in self if reg.is_parent]

    def __contains__(self, reg_id: object) -> bool:
        return isinstance(reg_id, int) and not isinstance(reg_id, bool) and 0 < reg_id < len(self._registers)

    def __iter__(self) -> Iterator[RegisterDescriptor]:
        for reg in self._registers[1:]:
            assert reg is not None
            yield reg

    def __len__(self) -> int:
        return len(self._registers) - 1
