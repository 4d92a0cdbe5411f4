"""Building and reading the serialized instructions sysvar."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Sequence

from .addresses import ADDRESS_LENGTH, Address

INSTRUCTIONS_SYSVAR_ID = Address.from_base58("Sysvar1nstructions1111111111111111111111111")

_U16 = struct.Struct("<H")
_META_SIZE = 1 + ADDRESS_LENGTH
_IS_SIGNER = 0b01
_IS_WRITABLE = 0b10


@dataclass(frozen=True)
class AccountMeta:
    """An account named by an instruction, with its signer and writable flags."""

    pubkey: Address
    is_signer: bool = False
    is_writable: bool = False


@dataclass(frozen=True)
class Instruction:
    """A program id, the accounts it is given and its data."""

    program_id: Address
    accounts: tuple[AccountMeta, ...] = ()
    data: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", tuple(self.accounts))
        object.__setattr__(self, "data", bytes(self.data))


@dataclass(frozen=True)
class InstructionView:
    """One instruction as it is laid out inside the sysvar data."""

    sysvar_data: bytes = field(repr=False)
    program_id: Address
    accounts_offset: int
    account_count: int
    data: bytes

    def account_pubkey(self, index: int) -> Address | None:
        """The address of the account at index, or None when out of range."""
        if not 0 <= index < self.account_count:
            return None
        return _read_address(self.sysvar_data, self.accounts_offset + index * _META_SIZE + 1)


def _read_u16(data: bytes, offset: int) -> int | None:
    if offset < 0 or offset + _U16.size > len(data):
        return None
    return _U16.unpack_from(data, offset)[0]


def _read_address(data: bytes, offset: int) -> Address | None:
    end = offset + ADDRESS_LENGTH
    if offset < 0 or end > len(data):
        return None
    return Address(data[offset:end])


def current_instruction_index(data: bytes) -> int | None:
    """The index of the executing instruction, stored in the last two bytes."""
    data = bytes(data)
    if len(data) < _U16.size:
        return None
    return _read_u16(data, len(data) - _U16.size)


def instruction_count(data: bytes) -> int | None:
    """The number of instructions in the sysvar."""
    return _read_u16(bytes(data), 0)


def load_instruction(data: bytes, index: int) -> InstructionView | None:
    """The instruction at index, or None if the data does not hold it."""
    data = bytes(data)
    count = instruction_count(data)
    if count is None or not 0 <= index < count:
        return None
    start = _read_u16(data, _U16.size + index * _U16.size)
    if start is None:
        return None
    account_count = _read_u16(data, start)
    if account_count is None:
        return None
    accounts_offset = start + _U16.size
    program_id_offset = accounts_offset + account_count * _META_SIZE
    program_id = _read_address(data, program_id_offset)
    if program_id is None:
        return None
    cursor = program_id_offset + ADDRESS_LENGTH
    data_len = _read_u16(data, cursor)
    if data_len is None:
        return None
    cursor += _U16.size
    end = cursor + data_len
    if end > len(data):
        return None
    return InstructionView(data, program_id, accounts_offset, account_count, data[cursor:end])


def build_instructions_data(instructions: Sequence[Instruction], current_index: int = 0) -> bytes:
    """Serialize instructions the way the runtime lays out the instructions sysvar."""
    instructions = list(instructions)
    header = bytearray(_U16.pack(len(instructions)))
    offset = _U16.size * (1 + len(instructions))
    bodies = []
    for ix in instructions:
        body = bytearray(_U16.pack(len(ix.accounts)))
        for meta in ix.accounts:
            flags = (_IS_SIGNER if meta.is_signer else 0) | (_IS_WRITABLE if meta.is_writable else 0)
            body.append(flags)
            body += bytes(meta.pubkey)
        body += bytes(ix.program_id)
        body += _U16.pack(len(ix.data))
        body += ix.data
        header += _U16.pack(offset)
        offset += len(body)
        bodies.append(bytes(body))
    return bytes(header) + b"".join(bodies) + _U16.pack(current_index)