"""A lamport vault keyed by a secp256r1 public key and unlocked by a signed message."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence

from .addresses import PROGRAM_ID, SYSTEM_PROGRAM_ID, Address, derive_address, find_program_address
from .errors import ErrorKind, ProgramError
from .instruction_sysvar import (
    INSTRUCTIONS_SYSVAR_ID,
    AccountMeta,
    current_instruction_index,
    load_instruction,
)
from .ledger import Ledger
from .secp256r1 import SECP256R1_COMPRESSED_PUBKEY_LENGTH, Secp256r1Instruction

_U64 = struct.Struct("<Q")
_I64 = struct.Struct("<q")
_PAYER_LEN = 32


def _vault_seeds(pubkey: bytes) -> list[bytes]:
    return [b"vault", pubkey[:1], pubkey[1:SECP256R1_COMPRESSED_PUBKEY_LENGTH]]


def _exact(accounts: Sequence[AccountMeta], count: int) -> list[AccountMeta]:
    accounts = list(accounts)
    if len(accounts) != count:
        raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
    return accounts


def _check_payer_and_vault(ledger: Ledger, payer: AccountMeta, vault: AccountMeta) -> None:
    if not payer.is_signer:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    if ledger.get(vault.pubkey).owner != SYSTEM_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)


@dataclass(frozen=True)
class DepositInstructionData:
    """The compressed public key that keys the vault, and the lamports to deposit."""

    pubkey: bytes
    amount: int

    SIZE = SECP256R1_COMPRESSED_PUBKEY_LENGTH + _U64.size

    @classmethod
    def parse(cls, data: bytes) -> DepositInstructionData:
        """Read a 33-byte public key followed by a little-endian u64 amount."""
        data = bytes(data)
        if len(data) != cls.SIZE:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        pubkey = data[:SECP256R1_COMPRESSED_PUBKEY_LENGTH]
        (amount,) = _U64.unpack(data[SECP256R1_COMPRESSED_PUBKEY_LENGTH:])
        return cls(pubkey, amount)


@dataclass(frozen=True)
class Deposit:
    """Move lamports from the payer into the empty vault of a public key."""

    payer: Address
    vault: Address
    instruction_data: DepositInstructionData

    DISCRIMINATOR = 0

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta], data: bytes) -> Deposit:
        """Validate the payer and the empty vault, then the instruction data."""
        payer, vault, _system = _exact(accounts, 3)
        _check_payer_and_vault(ledger, payer, vault)
        if ledger.get(vault.pubkey).lamports != 0:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        return cls(payer.pubkey, vault.pubkey, DepositInstructionData.parse(data))

    def process(self, ledger: Ledger) -> None:
        """Check the vault address against the public key and transfer the amount."""
        vault_key, _ = find_program_address(_vault_seeds(self.instruction_data.pubkey), PROGRAM_ID)
        if vault_key != self.vault:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
        ledger.transfer_lamports(self.payer, self.vault, self.instruction_data.amount, {self.payer})


@dataclass(frozen=True)
class Withdraw:
    """Empty the vault to the payer named in a secp256r1-signed message."""

    payer: Address
    vault: Address
    instructions_sysvar: Address
    bump: int

    DISCRIMINATOR = 1

    @classmethod
    def try_from(cls, ledger: Ledger, accounts: Sequence[AccountMeta], data: bytes) -> Withdraw:
        """Validate the payer and the funded vault, then read the bump byte."""
        payer, vault, instructions_sysvar, _system = _exact(accounts, 4)
        _check_payer_and_vault(ledger, payer, vault)
        if ledger.get(vault.pubkey).lamports == 0:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
        if not data:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        return cls(payer.pubkey, vault.pubkey, instructions_sysvar.pubkey, data[0])

    def process(self, ledger: Ledger, instructions_data: bytes, now: int) -> None:
        """Verify the following secp256r1 instruction and release the vault's lamports."""
        if self.instructions_sysvar != INSTRUCTIONS_SYSVAR_ID:
            raise ProgramError(ErrorKind.INVALID_ARGUMENT)
        current = current_instruction_index(instructions_data)
        if current is None:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        view = load_instruction(instructions_data, current + 1)
        if view is None:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)

        secp_ix = Secp256r1Instruction.from_introspected(view.program_id, view.data)
        if secp_ix.num_signatures() != 1:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        signer_key = secp_ix.get_signer(0)

        message = secp_ix.get_message_data(0)
        if len(message) < _PAYER_LEN:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        payer, expiry_bytes = message[:_PAYER_LEN], message[_PAYER_LEN:]
        if bytes(self.payer) != payer:
            raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
        if len(expiry_bytes) != _I64.size:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        (expiry,) = _I64.unpack(expiry_bytes)
        if now > expiry:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)

        signer = derive_address(_vault_seeds(signer_key), self.bump, PROGRAM_ID)
        lamports = ledger.get(self.vault).lamports
        ledger.transfer_lamports(self.vault, self.payer, lamports, {signer})


def process_instruction(ledger: Ledger, accounts: Sequence[AccountMeta], instruction_data: bytes,
                        instructions_data: bytes, now: int) -> None:
    """Dispatch on the first byte of the instruction data."""
    if not instruction_data:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
    tag, rest = instruction_data[0], bytes(instruction_data[1:])
    if tag == Deposit.DISCRIMINATOR:
        Deposit.try_from(ledger, accounts, rest).process(ledger)
    elif tag == Withdraw.DISCRIMINATOR:
        Withdraw.try_from(ledger, accounts, rest).process(ledger, instructions_data, now)
    else:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)