"""Keystone helper to turn assembly text into instruction bytes."""

import logging

import keystone.keystone as ks
from keystone.keystone_const import KS_ARCH_X86, KS_MODE_32, KS_MODE_64

from taintarch.exceptions import AssembleException, UnsupportedArchException

logger = logging.getLogger(__name__)


class Assembler:
    arch_mapping: dict[str, tuple[int, int]] = {
        'X86': (KS_ARCH_X86, KS_MODE_32),
        'AMD64': (KS_ARCH_X86, KS_MODE_64),
    }

    def __init__(self, arch_str: str) -> None:
        if arch_str not in self.arch_mapping:
            raise UnsupportedArchException(arch_str)
        self.arch_str = arch_str
        self.ks: ks.Ks = ks.Ks(*self.arch_mapping[arch_str])

    def assemble(self, asm_string: str, address: int = 0) -> bytes:
        try:
            encoding, _ = self.ks.asm(asm_string, address)
        except ks.KsError as e:
            raise AssembleException(asm_string, str(e)) from e
        if not encoding:
            raise AssembleException(asm_string)
        logger.debug(f'{asm_string} -> {bytes(encoding).hex()}')
        return bytes(encoding)
