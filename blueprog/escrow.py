"""An escrow offer: the maker locks tokens of one mint in exchange for tokens of another."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence

from .addresses import PROGRAM_ID, Address, derive_address, find_program_address
from .errors import ErrorKind, ProgramError
from .escrow_state import Escrow
from .instruction_sysvar import AccountMeta
from .ledger import TOKEN_PROGRAM_ID, Ledger, Mint, TokenAccount, associated_token_address

_U64 = struct.Struct("<Q")
_MAKE_DATA = struct.Struct("<QQQ")
_MAX_LAMPORTS = 2**64 - 1


def _unpack(accounts: Sequence[AccountMeta], count: int) -> list[AccountMeta]:
    accounts = list(accounts)
    if len(accounts) != count:
        raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
    return accounts[: count - 1]


def _load_mint(ledger: Ledger, address: Address) -> Mint:
    account = ledger.get(address)
    if account.owner != TOKEN_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    return Mint.load(account.data)


def _load_token(ledger: Ledger, address: Address) -> TokenAccount:
    account = ledger.get(address)
    if account.owner != TOKEN_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    return TokenAccount.load(account.data)


def _check_mints(ledger: Ledger, *mints: Address) -> None:
    loaded = [_load_mint(ledger, mint) for mint in mints]
    if not all(mint.is_initialized for mint in loaded):
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)


def _check_token(token: TokenAccount, mint: Address, owner: Address) -> None:
    if not token.is_initialized or token.mint != mint or token.owner != owner:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)


def _create_ata(ledger: Ledger, payer: Address, account: Address, wallet: Address,
                mint: Address, idempotent: bool) -> None:
    if associated_token_address(wallet, mint) != account:
        raise ProgramError(ErrorKind.INVALID_SEEDS)
    ledger.create_associated_token_account(payer, wallet, mint, idempotent)


def _escrow_seeds(maker: Address, seed: int) -> list:
    return [b"escrow", maker, _U64.pack(seed)]


def _verify_escrow(ledger: Ledger, maker: Address, escrow_address: Address) -> Escrow:
    escrow = Escrow.load(ledger.get(escrow_address).data)
    expected = derive_address(_escrow_seeds(maker, escrow.seed), escrow.bump, PROGRAM_ID)
    if expected != escrow_address:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    return escrow


def _escrow_signer(maker: Address, escrow: Escrow) -> Address:
    return derive_address(_escrow_seeds(maker, escrow.seed), escrow.bump, PROGRAM_ID)


def _close_escrow(ledger: Ledger, escrow: Address, recipient: Address) -> None:
    escrow_account = ledger.get(escrow)
    receiver = ledger.get(recipient)
    total = receiver.lamports + escrow_account.lamports
    if total > _MAX_LAMPORTS:
        raise ProgramError(ErrorKind.ARITHMETIC_OVERFLOW)
    receiver.lamports = total
    escrow_account.lamports = 0
    ledger.close_account(escrow)


@dataclass(frozen=True)
class MakeInstructionData:
    """Seed, amount of mint B wanted, and amount of mint A offered."""

    seed: int
    receive: int
    amount: int

    @classmethod
    def parse(cls, data: bytes) -> MakeInstructionData:
        """Read three little-endian u64 values; receive and amount must be non-zero."""
        if len(data) != _MAKE_DATA.size:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        seed, receive, amount = _MAKE_DATA.unpack(bytes(data))
        if amount == 0 or receive == 0:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        return cls(seed, receive, amount)


@dataclass(frozen=True)
class Make:
    """Open an escrow: create its state and vault, then fund the vault."""

    maker: Address
    escrow: Address
    mint_a: Address
    mint_b: Address
    maker_ata_a: Address
    vault: Address
    instruction_data: MakeInstructionData
    bump: int

    DISCRIMINATOR = 0

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta], data: bytes) -> Make:
        """Validate, then create the escrow account and its vault token account."""
        maker, escrow, mint_a, mint_b, maker_ata_a, vault, _system, _token = _unpack(accounts, 9)
        if not maker.is_signer:
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        _check_mints(ledger, mint_a.pubkey, mint_b.pubkey)
        maker_token = _load_token(ledger, maker_ata_a.pubkey)
        if not maker_token.is_initialized:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
        if maker_token.mint != mint_a.pubkey or maker_token.owner != maker.pubkey:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)

        instruction_data = MakeInstructionData.parse(data)
        pda, bump = find_program_address(_escrow_seeds(maker.pubkey, instruction_data.seed), PROGRAM_ID)

        ledger.create_account(maker.pubkey, escrow.pubkey, Escrow.LEN, PROGRAM_ID, {maker.pubkey, pda})
        _create_ata(ledger, maker.pubkey, vault.pubkey, escrow.pubkey, mint_a.pubkey, idempotent=False)

        return cls(maker.pubkey, escrow.pubkey, mint_a.pubkey, mint_b.pubkey,
                   maker_ata_a.pubkey, vault.pubkey, instruction_data, bump)

    def process(self, ledger: Ledger) -> None:
        """Write the escrow state and move the offered tokens into the vault."""
        account = ledger.get(self.escrow)
        Escrow.load(account.data)
        state = Escrow(self.instruction_data.seed, self.maker, self.mint_a, self.mint_b,
                       self.instruction_data.receive, self.bump)
        account.data = bytearray(state.pack())
        ledger.token_transfer(self.maker_ata_a, self.vault, self.maker,
                              self.instruction_data.amount, {self.maker})


@dataclass(frozen=True)
class Take:
    """Accept an escrow: pay the maker in mint B and receive the vault's mint A."""

    taker: Address
    maker: Address
    escrow: Address
    mint_a: Address
    mint_b: Address
    vault: Address
    taker_ata_a: Address
    taker_ata_b: Address
    maker_ata_b: Address

    DISCRIMINATOR = 1

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta]) -> Take:
        """Validate the accounts and that the escrow belongs to the maker."""
        (taker, maker, escrow, mint_a, mint_b, vault, taker_ata_a, taker_ata_b,
         maker_ata_b, _system, _token) = _unpack(accounts, 12)
        if not taker.is_signer:
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        _check_mints(ledger, mint_a.pubkey, mint_b.pubkey)
        _check_token(_load_token(ledger, taker_ata_b.pubkey), mint_b.pubkey, taker.pubkey)
        _verify_escrow(ledger, maker.pubkey, escrow.pubkey)
        return cls(taker.pubkey, maker.pubkey, escrow.pubkey, mint_a.pubkey, mint_b.pubkey,
                   vault.pubkey, taker_ata_a.pubkey, taker_ata_b.pubkey, maker_ata_b.pubkey)

    def process(self, ledger: Ledger) -> None:
        """Swap the tokens, then close the vault and the escrow."""
        _create_ata(ledger, self.taker, self.maker_ata_b, self.maker, self.mint_b, idempotent=True)
        _create_ata(ledger, self.taker, self.taker_ata_a, self.taker, self.mint_a, idempotent=True)

        taker_a = _load_token(ledger, self.taker_ata_a)
        maker_b = _load_token(ledger, self.maker_ata_b)
        _check_token(taker_a, self.mint_a, self.taker)
        _check_token(maker_b, self.mint_b, self.maker)

        escrow = Escrow.load(ledger.get(self.escrow).data)
        signer = _escrow_signer(self.maker, escrow)
        amount = _load_token(ledger, self.vault).amount

        ledger.token_transfer(self.vault, self.taker_ata_a, self.escrow, amount, {signer})
        ledger.token_transfer(self.taker_ata_b, self.maker_ata_b, self.taker, escrow.receive, {self.taker})
        ledger.close_token_account(self.vault, self.maker, self.escrow, {signer})
        _close_escrow(ledger, self.escrow, self.taker)


@dataclass(frozen=True)
class Refund:
    """Cancel an escrow: return the vault's tokens to the maker and close it."""

    maker: Address
    escrow: Address
    mint_a: Address
    vault: Address
    maker_ata_a: Address

    DISCRIMINATOR = 2

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta]) -> Refund:
        """Validate the accounts and that the escrow belongs to the maker."""
        maker, escrow, mint_a, vault, maker_ata_a, _system, _token = _unpack(accounts, 8)
        if not maker.is_signer:
            raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)
        _check_mints(ledger, mint_a.pubkey)
        _verify_escrow(ledger, maker.pubkey, escrow.pubkey)
        return cls(maker.pubkey, escrow.pubkey, mint_a.pubkey, vault.pubkey, maker_ata_a.pubkey)

    def process(self, ledger: Ledger) -> None:
        """Return the tokens, then close the vault and the escrow."""
        _create_ata(ledger, self.maker, self.maker_ata_a, self.maker, self.mint_a, idempotent=True)
        _check_token(_load_token(ledger, self.maker_ata_a), self.mint_a, self.maker)

        escrow = Escrow.load(ledger.get(self.escrow).data)
        signer = _escrow_signer(self.maker, escrow)
        amount = _load_token(ledger, self.vault).amount

        ledger.token_transfer(self.vault, self.maker_ata_a, self.escrow, amount, {signer})
        ledger.close_token_account(self.vault, self.maker, self.escrow, {signer})
        _close_escrow(ledger, self.escrow, self.maker)


def process_instruction(ledger: Ledger, accounts: Sequence[AccountMeta], instruction_data: bytes) -> None:
    """Dispatch on the first byte of the instruction data."""
    if not instruction_data:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
    tag, rest = instruction_data[0], bytes(instruction_data[1:])
    if tag == Make.DISCRIMINATOR:
        Make.try_from(ledger, accounts, rest).process(ledger)
    elif tag == Take.DISCRIMINATOR:
        Take.try_from(ledger, accounts).process(ledger)
    elif tag == Refund.DISCRIMINATOR:
        Refund.try_from(ledger, accounts).process(ledger)
    else:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)