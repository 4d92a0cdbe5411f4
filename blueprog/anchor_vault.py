"""A lamport vault that requires deposits above the rent-exempt minimum."""

from __future__ import annotations

from .addresses import PROGRAM_ID, Address, derive_address, find_program_address
from .errors import VaultError
from .ledger import (
    ACCOUNT_STORAGE_OVERHEAD,
    EXEMPTION_THRESHOLD_YEARS,
    LAMPORTS_PER_BYTE_YEAR,
    Ledger,
)


def minimum_balance(data_len: int) -> int:
    """Lamports that keep an account of data_len bytes rent exempt."""
    return (ACCOUNT_STORAGE_OVERHEAD + data_len) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD_YEARS


def _vault(user: Address) -> tuple[Address, int]:
    return find_program_address([b"vault", user], PROGRAM_ID)


def deposit(ledger: Ledger, user: Address, amount: int) -> None:
    """Fund the user's empty vault with more than the rent-exempt minimum."""
    vault, _ = _vault(user)
    if ledger.get(vault).lamports != 0:
        raise VaultError.VAULT_ALREADY_EXISTS.error()
    if not amount > minimum_balance(0):
        raise VaultError.INVALID_AMOUNT.error()
    ledger.transfer_lamports(user, vault, amount, {user})


def withdraw(ledger: Ledger, user: Address) -> None:
    """Return the vault's whole balance to the user."""
    vault, bump = _vault(user)
    lamports = ledger.get(vault).lamports
    if lamports == 0:
        raise VaultError.INVALID_AMOUNT.error()
    signer = derive_address([b"vault", user], bump, PROGRAM_ID)
    ledger.transfer_lamports(vault, user, lamports, {signer})