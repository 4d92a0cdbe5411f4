"""Stored state of an escrow offer."""

from __future__ import annotations

import struct
from dataclasses import dataclass

from .addresses import Address
from .errors import ErrorKind, ProgramError

_LAYOUT = struct.Struct("<Q32s32s32sQB")

_DISCRIMINATOR_NOT_FOUND = 3001
_DISCRIMINATOR_MISMATCH = 3002
_DID_NOT_DESERIALIZE = 3003


@dataclass
class Escrow:
    """Escrow state stored as a fixed 113-byte record."""

    seed: int
    maker: Address
    mint_a: Address
    mint_b: Address
    receive: int
    bump: int

    LEN = _LAYOUT.size

    @classmethod
    def load(cls, data: bytes) -> Escrow:
        """Read the record; the data must be exactly LEN bytes."""
        if len(data) != cls.LEN:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        seed, maker, mint_a, mint_b, receive, bump = _LAYOUT.unpack(bytes(data))
        return cls(seed, Address(maker), Address(mint_a), Address(mint_b), receive, bump)

    def pack(self) -> bytes:
        """The record's bytes."""
        return _LAYOUT.pack(
            self.seed, bytes(self.maker), bytes(self.mint_a), bytes(self.mint_b), self.receive, self.bump
        )


@dataclass
class EscrowConfig:
    """Escrow state stored behind a one-byte discriminator."""

    id: int
    maker: Address
    mint_a: Address
    mint_b: Address
    receive_amount: int
    bump: int

    DISCRIMINATOR = b"\x01"
    INIT_SPACE = _LAYOUT.size
    LEN = len(DISCRIMINATOR) + INIT_SPACE

    @classmethod
    def load(cls, data: bytes) -> EscrowConfig:
        """Check the discriminator and read the fields that follow it."""
        data = bytes(data)
        prefix = len(cls.DISCRIMINATOR)
        if len(data) < prefix:
            raise ProgramError.custom(_DISCRIMINATOR_NOT_FOUND)
        if data[:prefix] != cls.DISCRIMINATOR:
            raise ProgramError.custom(_DISCRIMINATOR_MISMATCH)
        if len(data) < cls.LEN:
            raise ProgramError.custom(_DID_NOT_DESERIALIZE)
        fields = _LAYOUT.unpack_from(data, prefix)
        id_, maker, mint_a, mint_b, receive, bump = fields
        return cls(id_, Address(maker), Address(mint_a), Address(mint_b), receive, bump)

    def pack(self) -> bytes:
        """Discriminator followed by the fields."""
        return self.DISCRIMINATOR + _LAYOUT.pack(
            self.id, bytes(self.maker), bytes(self.mint_a), bytes(self.mint_b),
            self.receive_amount, self.bump,
        )