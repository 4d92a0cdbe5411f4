"""Reading signatures, public keys and messages out of secp256r1 verify instructions."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .addresses import Address
from .errors import ErrorKind, ProgramError

SECP256R1_PROGRAM_ID = Address(
    bytes(
        [
            0x06, 0x92, 0x0D, 0xEC, 0x2F, 0xEA, 0x71, 0xB5,
            0xB7, 0x23, 0x81, 0x4D, 0x74, 0x2D, 0xA9, 0x03,
            0x1C, 0x83, 0xE7, 0x5F, 0xDB, 0x79, 0x5D, 0x56,
            0x8E, 0x75, 0x47, 0x80, 0x20, 0x00, 0x00, 0x00,
        ]
    )
)
SECP256R1_SIGNATURE_LENGTH = 64
SECP256R1_COMPRESSED_PUBKEY_LENGTH = 33
LOCAL_INSTRUCTION_INDEX = 0xFFFF

_OFFSETS = struct.Struct("<7H")
_HEADER_SIZE = 2


def _invalid_data() -> ProgramError:
    return ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)


@dataclass(frozen=True)
class SignatureOffsets:
    """Where one signature, its public key and its message sit."""

    signature_offset: int
    signature_instruction_index: int
    public_key_offset: int
    public_key_instruction_index: int
    message_data_offset: int
    message_data_size: int
    message_instruction_index: int

    SIZE = _OFFSETS.size

    @classmethod
    def parse(cls, data: bytes) -> SignatureOffsets:
        """Read one offsets record from the start of data."""
        if len(data) < _OFFSETS.size:
            raise _invalid_data()
        return cls(*_OFFSETS.unpack_from(data))

    @staticmethod
    def _checked(data: bytes, start: int, length: int) -> bytes:
        end = start + length
        if end > len(data):
            raise _invalid_data()
        return bytes(data[start:end])

    def get_signer(self, data: bytes) -> bytes:
        """The compressed public key within data."""
        return self._checked(data, self.public_key_offset, SECP256R1_COMPRESSED_PUBKEY_LENGTH)

    def get_signature(self, data: bytes) -> bytes:
        """The signature within data."""
        return self._checked(data, self.signature_offset, SECP256R1_SIGNATURE_LENGTH)

    def get_message_data(self, data: bytes) -> bytes:
        """The signed message within data."""
        return self._checked(data, self.message_data_offset, self.message_data_size)

    def get_signer_unchecked(self, data: bytes) -> bytes:
        """The public key slice; the caller ensures it lies within data."""
        start = self.public_key_offset
        return bytes(data[start : start + SECP256R1_COMPRESSED_PUBKEY_LENGTH])

    def get_signature_unchecked(self, data: bytes) -> bytes:
        """The signature slice; the caller ensures it lies within data."""
        start = self.signature_offset
        return bytes(data[start : start + SECP256R1_SIGNATURE_LENGTH])

    def get_message_data_unchecked(self, data: bytes) -> bytes:
        """The message slice; the caller ensures it lies within data."""
        start = self.message_data_offset
        return bytes(data[start : start + self.message_data_size])


@dataclass(frozen=True)
class Secp256r1Instruction:
    """A parsed secp256r1 verify instruction."""

    signature_count: int
    offsets: tuple[SignatureOffsets, ...]
    data: bytes

    @classmethod
    def parse(cls, data: bytes) -> Secp256r1Instruction:
        """Parse the instruction data of a secp256r1 verify instruction."""
        data = bytes(data)
        if len(data) < _HEADER_SIZE:
            raise _invalid_data()
        count = data[0]
        end = _HEADER_SIZE + count * SignatureOffsets.SIZE
        if len(data) < end:
            raise _invalid_data()
        offsets = tuple(
            SignatureOffsets(*fields) for fields in _OFFSETS.iter_unpack(data[_HEADER_SIZE:end])
        )
        return cls(count, offsets, data)

    @classmethod
    def from_introspected(cls, program_id: Address, data: bytes) -> Secp256r1Instruction:
        """Parse an introspected instruction, which must target the secp256r1 program."""
        if program_id != SECP256R1_PROGRAM_ID:
            raise ProgramError(ErrorKind.INCORRECT_PROGRAM_ID)
        return cls.parse(data)

    def num_signatures(self) -> int:
        """The number of signatures in this instruction."""
        return self.signature_count

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.signature_count:
            raise ProgramError(ErrorKind.INVALID_ARGUMENT)

    def _local(self, index: int, field: str) -> SignatureOffsets:
        offset = self.offsets[index]
        if getattr(offset, field) != LOCAL_INSTRUCTION_INDEX:
            raise _invalid_data()
        return offset

    def get_signer(self, index: int) -> bytes:
        """The public key of the signature at index."""
        self._check_index(index)
        return self.get_signer_unchecked(index)

    def get_signature(self, index: int) -> bytes:
        """The signature at index."""
        self._check_index(index)
        return self.get_signature_unchecked(index)

    def get_message_data(self, index: int) -> bytes:
        """The message signed by the signature at index."""
        self._check_index(index)
        return self.get_message_data_unchecked(index)

    def get_signer_unchecked(self, index: int) -> bytes:
        """The public key at index, without checking index against the count."""
        offset = self._local(index, "public_key_instruction_index")
        return offset.get_signer(self.data)

    def get_signature_unchecked(self, index: int) -> bytes:
        """The signature at index, without checking index against the count."""
        offset = self._local(index, "signature_instruction_index")
        return offset.get_signature(self.data)

    def get_message_data_unchecked(self, index: int) -> bytes:
        """The message at index, without checking index against the count."""
        offset = self._local(index, "message_instruction_index")
        return offset.get_message_data(self.data)