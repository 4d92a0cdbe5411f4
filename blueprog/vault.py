"""A lamport vault held at an address derived from its owner."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence

from .addresses import PROGRAM_ID, SYSTEM_PROGRAM_ID, Address, derive_address, find_program_address
from .errors import ErrorKind, ProgramError
from .instruction_sysvar import AccountMeta
from .ledger import Ledger

_U64 = struct.Struct("<Q")


def _two_accounts(accounts: Sequence[AccountMeta]) -> tuple[AccountMeta, AccountMeta]:
    accounts = list(accounts)
    if len(accounts) != 3:
        raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
    return accounts[0], accounts[1]


def _check_vault(ledger: Ledger, owner: AccountMeta, vault: AccountMeta) -> int:
    if not owner.is_signer:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    vault_key, bump = find_program_address([b"vault", owner.pubkey], PROGRAM_ID)
    if vault_key != vault.pubkey:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    if ledger.get(vault.pubkey).owner != SYSTEM_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    return bump


@dataclass(frozen=True)
class Deposit:
    """Move lamports from the owner into an empty vault."""

    owner: Address
    vault: Address
    amount: int

    DISCRIMINATOR = 0

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta], data: bytes) -> Deposit:
        """Validate the accounts and the 8-byte amount."""
        owner, vault = _two_accounts(accounts)
        _check_vault(ledger, owner, vault)
        if ledger.get(vault.pubkey).lamports != 0:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        if len(data) != _U64.size:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        (amount,) = _U64.unpack(bytes(data))
        if amount == 0:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        return cls(owner.pubkey, vault.pubkey, amount)

    def process(self, ledger: Ledger) -> None:
        """Transfer the amount into the vault."""
        ledger.transfer_lamports(self.owner, self.vault, self.amount, {self.owner})


@dataclass(frozen=True)
class Withdraw:
    """Return everything in the vault to its owner."""

    owner: Address
    vault: Address
    bump: int

    DISCRIMINATOR = 1

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta]) -> Withdraw:
        """Validate the accounts; the vault must hold lamports."""
        owner, vault = _two_accounts(accounts)
        bump = _check_vault(ledger, owner, vault)
        if ledger.get(vault.pubkey).lamports == 0:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        return cls(owner.pubkey, vault.pubkey, bump)

    def process(self, ledger: Ledger) -> None:
        """Transfer the vault's whole balance, signed by the vault address."""
        signer = derive_address([b"vault", self.owner], self.bump, PROGRAM_ID)
        lamports = ledger.get(self.vault).lamports
        ledger.transfer_lamports(self.vault, self.owner, lamports, {signer})


def process_instruction(ledger: Ledger, accounts: Sequence[AccountMeta], instruction_data: bytes) -> None:
    """Dispatch on the first byte of the instruction data."""
    if not instruction_data:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
    tag, rest = instruction_data[0], bytes(instruction_data[1:])
    if tag == Deposit.DISCRIMINATOR:
        Deposit.try_from(ledger, accounts, rest).process(ledger)
    elif tag == Withdraw.DISCRIMINATOR:
        Withdraw.try_from(ledger, accounts).process(ledger)
    else:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)