"""An in-memory account store with system and token program operations."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Iterable

from .addresses import SYSTEM_PROGRAM_ID, Address, find_program_address
from .errors import ErrorKind, ProgramError

_KEG_PROGRAM_TEXT = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
_ATA_PROGRAM_TEXT = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"

TOKEN_PROGRAM_ID = Address.from_base58(_KEG_PROGRAM_TEXT)
ASSOCIATED_TOKEN_PROGRAM_ID = Address.from_base58(_ATA_PROGRAM_TEXT)

ACCOUNT_STORAGE_OVERHEAD = 128
LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_THRESHOLD_YEARS = 2

_TOKEN_INSUFFICIENT_FUNDS = 1
_TOKEN_MINT_MISMATCH = 3
_TOKEN_OWNER_MISMATCH = 4
_TOKEN_NON_NATIVE_HAS_BALANCE = 11

_MINT_LAYOUT = struct.Struct("<I32sQBBI32s")
_HOLDING_LAYOUT = struct.Struct("<32s32sQI32sBIQQI32s")
_NONE = bytes(32)


def _rent(space: int) -> int:
    return (ACCOUNT_STORAGE_OVERHEAD + space) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


def _option(value: Address | None) -> tuple[int, bytes]:
    return (0, _NONE) if value is None else (1, bytes(value))


def _unoption(tag: int, raw: bytes) -> Address | None:
    return Address(raw) if tag else None


@dataclass
class Account:
    """An account: balance, data and owning program."""

    address: Address
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: Address = SYSTEM_PROGRAM_ID
    executable: bool = False

    def __post_init__(self) -> None:
        self.data = bytearray(self.data)


@dataclass
class Mint:
    """A token mint record."""

    mint_authority: Address | None
    supply: int
    decimals: int
    is_initialized: bool = True
    freeze_authority: Address | None = None

    LEN = _MINT_LAYOUT.size

    @classmethod
    def load(cls, data: bytes) -> Mint:
        """Read a mint record of exactly LEN bytes."""
        if len(data) != cls.LEN:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        tag, auth, supply, decimals, init, ftag, freeze = _MINT_LAYOUT.unpack(bytes(data))
        return cls(_unoption(tag, auth), supply, decimals, bool(init), _unoption(ftag, freeze))

    def pack(self) -> bytes:
        """The record's bytes."""
        return _MINT_LAYOUT.pack(
            *_option(self.mint_authority), self.supply, self.decimals,
            int(self.is_initialized), *_option(self.freeze_authority),
        )


@dataclass
class TokenAccount:
    """A token account record."""

    mint: Address
    owner: Address
    amount: int
    delegate: Address | None = None
    state: int = 1
    is_native: int | None = None
    delegated_amount: int = 0
    close_authority: Address | None = None

    LEN = _HOLDING_LAYOUT.size

    @property
    def is_initialized(self) -> bool:
        return self.state != 0

    @classmethod
    def load(cls, data: bytes) -> TokenAccount:
        """Read a token account record of exactly LEN bytes."""
        if len(data) != cls.LEN:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        (mint, owner, amount, dtag, delegate, state, ntag, native,
         delegated, ctag, close) = _HOLDING_LAYOUT.unpack(bytes(data))
        return cls(
            Address(mint), Address(owner), amount, _unoption(dtag, delegate), state,
            native if ntag else None, delegated, _unoption(ctag, close),
        )

    def pack(self) -> bytes:
        """The record's bytes."""
        native = (0, 0) if self.is_native is None else (1, self.is_native)
        return _HOLDING_LAYOUT.pack(
            bytes(self.mint), bytes(self.owner), self.amount, *_option(self.delegate),
            self.state, *native, self.delegated_amount, *_option(self.close_authority),
        )


def associated_token_address(wallet: Address, mint: Address) -> Address:
    """The associated token account of a wallet for a mint."""
    return find_program_address([wallet, TOKEN_PROGRAM_ID, mint], ASSOCIATED_TOKEN_PROGRAM_ID)[0]


class Ledger:
    """Accounts by address; unknown addresses read as empty system accounts."""

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._accounts: dict[Address, Account] = {}
        for account in accounts:
            self.add(account)

    def __contains__(self, address: object) -> bool:
        return address in self._accounts

    def add(self, account: Account) -> Account:
        """Store an account, replacing any at the same address."""
        self._accounts[account.address] = account
        return account

    def get(self, address: Address) -> Account:
        """The account at address, created empty if it was not there."""
        return self._accounts.setdefault(address, Account(address))

    def _token(self, address: Address) -> TokenAccount:
        account = self.get(address)
        if account.owner != TOKEN_PROGRAM_ID:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
        return TokenAccount.load(account.data)

    def _store_token(self, address: Address, holding: TokenAccount) -> None:
        self.get(address).data = bytearray(holding.pack())

    def _debit(self, account: Account, amount: int) -> None:
        if account.lamports < amount:
            raise ProgramError(ErrorKind.INSUFFICIENT_FUNDS)
        account.lamports -= amount

    def transfer_lamports(self, source: Address, destination: Address, amount: int,
                          signers: Iterable[Address]) -> None:
        """Move lamports between system-owned accounts, as the system program does."""
        if amount < 0:
            raise ProgramError(ErrorKind.INVALID_ARGUMENT)
        if source not in set(signers):
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        src = self.get(source)
        if src.owner != SYSTEM_PROGRAM_ID or src.data:
            raise ProgramError(ErrorKind.INVALID_ARGUMENT)
        self._debit(src, amount)
        self.get(destination).lamports += amount

    def create_account(self, payer: Address, address: Address, space: int, owner: Address,
                       signers: Iterable[Address]) -> Account:
        """Fund a new account with its rent-exempt minimum and assign it."""
        signer_set = set(signers)
        if payer not in signer_set or address not in signer_set:
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        target = self.get(address)
        if target.lamports or target.data or target.owner != SYSTEM_PROGRAM_ID:
            raise ProgramError(ErrorKind.ACCOUNT_ALREADY_INITIALIZED)
        rent = _rent(space)
        self._debit(self.get(payer), rent)
        target.lamports = rent
        target.data = bytearray(space)
        target.owner = owner
        return target

    def create_associated_token_account(self, payer: Address, wallet: Address, mint: Address,
                                        idempotent: bool = False) -> Address:
        """Create the wallet's token account for a mint; returns its address."""
        mint_account = self.get(mint)
        if mint_account.owner != TOKEN_PROGRAM_ID:
            raise ProgramError(ErrorKind.INCORRECT_PROGRAM_ID)
        Mint.load(mint_account.data)
        address = associated_token_address(wallet, mint)
        target = self.get(address)
        if target.owner == TOKEN_PROGRAM_ID:
            if not idempotent:
                raise ProgramError(ErrorKind.ACCOUNT_ALREADY_INITIALIZED)
            existing = TokenAccount.load(target.data)
            if existing.owner != wallet or existing.mint != mint:
                raise ProgramError(ErrorKind.ILLEGAL_OWNER)
            return address
        rent = _rent(TokenAccount.LEN)
        needed = max(0, rent - target.lamports)
        self._debit(self.get(payer), needed)
        target.lamports += needed
        target.owner = TOKEN_PROGRAM_ID
        target.data = bytearray(TokenAccount(mint, wallet, 0).pack())
        return address

    def token_transfer(self, source: Address, destination: Address, authority: Address,
                       amount: int, signers: Iterable[Address]) -> None:
        """Move tokens between two token accounts of the same mint."""
        if authority not in set(signers):
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        src = self._token(source)
        dst = self._token(destination)
        if src.mint != dst.mint:
            raise ProgramError.custom(_TOKEN_MINT_MISMATCH)
        if src.owner != authority:
            raise ProgramError.custom(_TOKEN_OWNER_MISMATCH)
        if amount < 0 or src.amount < amount:
            raise ProgramError.custom(_TOKEN_INSUFFICIENT_FUNDS)
        if source == destination:
            return
        src.amount -= amount
        dst.amount += amount
        self._store_token(source, src)
        self._store_token(destination, dst)

    def close_token_account(self, account: Address, destination: Address, authority: Address,
                            signers: Iterable[Address]) -> None:
        """Close an empty token account, sending its lamports to destination."""
        if authority not in set(signers):
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        holding = self._token(account)
        if holding.owner != authority:
            raise ProgramError.custom(_TOKEN_OWNER_MISMATCH)
        if holding.amount != 0:
            raise ProgramError.custom(_TOKEN_NON_NATIVE_HAS_BALANCE)
        closed = self._accounts.pop(account)
        self.get(destination).lamports += closed.lamports

    def close_account(self, address: Address) -> Account | None:
        """Remove an account from the store, returning what was there."""
        return self._accounts.pop(address, None)