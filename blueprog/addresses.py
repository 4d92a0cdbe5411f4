"""32-byte account addresses, base58 text form and program derived addresses."""

from __future__ import annotations

import hashlib
import itertools
from dataclasses import dataclass
from typing import Iterable, Union

from .errors import ErrorKind, ProgramError

ADDRESS_LENGTH = 32
MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {char: position for position, char in enumerate(_ALPHABET)}

_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P


def b58encode(data: bytes) -> str:
    """Encode bytes in base58."""
    data = bytes(data)
    zeros = sum(1 for _ in itertools.takewhile(lambda b: b == 0, data))
    number = int.from_bytes(data, "big")
    digits = []
    while number:
        number, remainder = divmod(number, 58)
        digits.append(_ALPHABET[remainder])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode base58 text; raises ValueError on characters outside the alphabet."""
    number = 0
    for char in text:
        try:
            number = number * 58 + _INDEX[char]
        except KeyError:
            raise ValueError(f"invalid base58 character {char!r}") from None
    zeros = sum(1 for _ in itertools.takewhile(lambda c: c == "1", text))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * zeros + body


@dataclass(frozen=True)
class Address:
    """A 32-byte account address."""

    raw: bytes

    def __post_init__(self) -> None:
        raw = bytes(self.raw)
        if len(raw) != ADDRESS_LENGTH:
            raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
        object.__setattr__(self, "raw", raw)

    @classmethod
    def from_base58(cls, text: str) -> Address:
        """Parse the base58 text form of an address."""
        return cls(b58decode(text))

    def to_base58(self) -> str:
        """The base58 text form of this address."""
        return b58encode(self.raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.to_base58()


Seed = Union[bytes, bytearray, memoryview, Address]

PROGRAM_ID = Address.from_base58("22222222222222222222222222222222222222222222")
SYSTEM_PROGRAM_ID = Address(bytes(ADDRESS_LENGTH))


def is_on_curve(data: bytes) -> bool:
    """Whether 32 bytes decode to a point on the ed25519 curve."""
    data = bytes(data)
    if len(data) != ADDRESS_LENGTH:
        raise ValueError("a compressed point is 32 bytes")
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, -1, _P) % _P
    return x2 == 0 or pow(x2, (_P - 1) // 2, _P) == 1


def _seed_bytes(seeds: Iterable[Seed]) -> list[bytes]:
    result = []
    for seed in seeds:
        if isinstance(seed, int):
            raise TypeError("seeds must be bytes-like or addresses")
        result.append(bytes(seed))
    return result


def _check_seeds(seeds: list[bytes], extra: int = 0) -> None:
    if len(seeds) + extra > MAX_SEEDS or any(len(s) > MAX_SEED_LEN for s in seeds):
        raise ProgramError(ErrorKind.MAX_SEED_LENGTH_EXCEEDED)


def _hash(seeds: list[bytes], program_id: Address) -> bytes:
    digest = hashlib.sha256()
    for seed in seeds:
        digest.update(seed)
    digest.update(bytes(program_id))
    digest.update(PDA_MARKER)
    return digest.digest()


def create_program_address(seeds: Iterable[Seed], program_id: Address) -> Address:
    """Derive an address from seeds; raises if it lies on the curve."""
    seed_list = _seed_bytes(seeds)
    _check_seeds(seed_list)
    digest = _hash(seed_list, program_id)
    if is_on_curve(digest):
        raise ProgramError(ErrorKind.INVALID_SEEDS)
    return Address(digest)


def derive_address(seeds: Iterable[Seed], bump: int | None, program_id: Address) -> Address:
    """Hash seeds, an optional bump and the program id, without a curve check."""
    seed_list = _seed_bytes(seeds)
    if bump is not None:
        seed_list.append(bytes([bump]))
    _check_seeds(seed_list)
    return Address(_hash(seed_list, program_id))


def find_program_address(seeds: Iterable[Seed], program_id: Address) -> tuple[Address, int]:
    """Find the off-curve address with the highest bump, returning it and the bump."""
    seed_list = _seed_bytes(seeds)
    _check_seeds(seed_list, extra=1)
    for bump in range(255, 0, -1):
        try:
            return create_program_address([*seed_list, bytes([bump])], program_id), bump
        except ProgramError as err:
            if err.kind is not ErrorKind.INVALID_SEEDS:
                raise
    raise ProgramError(ErrorKind.INVALID_SEEDS)