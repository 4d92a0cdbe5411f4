"""A flash loan: borrow tokens from the protocol and repay them with a fee in the same transaction."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Sequence

from .addresses import PROGRAM_ID, SYSTEM_PROGRAM_ID, derive_address, find_program_address
from .errors import ErrorKind, ProgramError, ProtocolError
from .instruction_sysvar import (
    INSTRUCTIONS_SYSVAR_ID,
    AccountMeta,
    Instruction,
    build_instructions_data,
    current_instruction_index,
    instruction_count,
    load_instruction,
)
from .ledger import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    Ledger,
    Mint,
    TokenAccount,
    associated_token_address,
)

BORROW_DISCRIMINATOR = bytes([228, 253, 131, 202, 207, 116, 89, 18])
REPAY_DISCRIMINATOR = bytes([234, 103, 67, 82, 208, 234, 219, 166])
FEE_BPS = 500
BPS_DENOMINATOR = 10_000

_U64 = struct.Struct("<Q")
_MAX_U64 = 2**64 - 1
_ACCOUNT_COUNT = 9
_BORROWER_ATA_POSITION = 3
_PROTOCOL_ATA_POSITION = 4


@dataclass(frozen=True)
class FlashLoanAccounts:
    """The accounts both borrow and repay take, in instruction order."""

    borrower: AccountMeta
    protocol: AccountMeta
    mint: AccountMeta
    borrower_ata: AccountMeta
    protocol_ata: AccountMeta
    instructions: AccountMeta
    token_program: AccountMeta
    associated_token_program: AccountMeta
    system_program: AccountMeta


def _require(condition: bool, error: ProtocolError) -> None:
    if not condition:
        raise error.error()


def _validate(ledger: Ledger, accounts: FlashLoanAccounts) -> int:
    """Check every account constraint; returns the protocol bump."""
    if not accounts.borrower.is_signer:
        raise ProgramError(ErrorKind.MISSING_REQUIRED_SIGNATURE)

    protocol, bump = find_program_address([b"protocol"], PROGRAM_ID)
    if accounts.protocol.pubkey != protocol:
        raise ProgramError(ErrorKind.INVALID_SEEDS)
    if ledger.get(protocol).owner != SYSTEM_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)

    for meta, expected in (
        (accounts.token_program, TOKEN_PROGRAM_ID),
        (accounts.associated_token_program, ASSOCIATED_TOKEN_PROGRAM_ID),
        (accounts.system_program, SYSTEM_PROGRAM_ID),
    ):
        if meta.pubkey != expected:
            raise ProgramError(ErrorKind.INCORRECT_PROGRAM_ID)

    if accounts.instructions.pubkey != INSTRUCTIONS_SYSVAR_ID:
        raise ProgramError(ErrorKind.INVALID_ARGUMENT)

    mint = accounts.mint.pubkey
    mint_account = ledger.get(mint)
    if mint_account.owner != TOKEN_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    Mint.load(mint_account.data)

    borrower = accounts.borrower.pubkey
    if accounts.borrower_ata.pubkey != associated_token_address(borrower, mint):
        raise ProgramError(ErrorKind.INVALID_SEEDS)
    ledger.create_associated_token_account(borrower, borrower, mint, idempotent=True)

    if accounts.protocol_ata.pubkey != associated_token_address(protocol, mint):
        raise ProgramError(ErrorKind.INVALID_SEEDS)
    protocol_ata = ledger.get(accounts.protocol_ata.pubkey)
    if protocol_ata.owner != TOKEN_PROGRAM_ID:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_OWNER)
    token = TokenAccount.load(protocol_ata.data)
    if token.mint != mint or token.owner != protocol:
        raise ProgramError(ErrorKind.INVALID_ACCOUNT_DATA)
    return bump


def borrow(ledger: Ledger, accounts: FlashLoanAccounts, amount: int) -> None:
    """Lend amount to the borrower, provided the transaction ends with a matching repay."""
    bump = _validate(ledger, accounts)
    ix_data = bytes(ledger.get(accounts.instructions.pubkey).data)

    current = current_instruction_index(ix_data)
    _require(current is not None and current == 0, ProtocolError.INVALID_IX)

    count = instruction_count(ix_data)
    _require(count is not None and count >= 1, ProtocolError.MISSING_REPAY_IX)
    repay_ix = load_instruction(ix_data, count - 1)
    _require(repay_ix is not None, ProtocolError.MISSING_REPAY_IX)

    _require(repay_ix.program_id == PROGRAM_ID, ProtocolError.INVALID_PROGRAM)
    _require(repay_ix.data.startswith(REPAY_DISCRIMINATOR), ProtocolError.INVALID_IX)
    _require(
        repay_ix.account_pubkey(_BORROWER_ATA_POSITION) == accounts.borrower_ata.pubkey,
        ProtocolError.INVALID_BORROWER_ATA,
    )
    _require(
        repay_ix.account_pubkey(_PROTOCOL_ATA_POSITION) == accounts.protocol_ata.pubkey,
        ProtocolError.INVALID_PROTOCOL_ATA,
    )
    _require(amount > 0, ProtocolError.INVALID_AMOUNT)

    signer = derive_address([b"protocol"], bump, PROGRAM_ID)
    ledger.token_transfer(accounts.protocol_ata.pubkey, accounts.borrower_ata.pubkey,
                          accounts.protocol.pubkey, amount, {signer})


def repay(ledger: Ledger, accounts: FlashLoanAccounts) -> None:
    """Return the amount of the transaction's first instruction plus the fee."""
    _validate(ledger, accounts)
    ix_data = bytes(ledger.get(accounts.instructions.pubkey).data)

    borrow_ix = load_instruction(ix_data, 0)
    _require(borrow_ix is not None, ProtocolError.MISSING_BORROW_IX)
    amount_bytes = borrow_ix.data[8:16]
    _require(len(amount_bytes) == _U64.size, ProtocolError.MISSING_BORROW_IX)
    (borrowed,) = _U64.unpack(amount_bytes)

    fee = borrowed * FEE_BPS // BPS_DENOMINATOR
    total = borrowed + fee
    _require(total <= _MAX_U64, ProtocolError.OVERFLOW)

    borrower = accounts.borrower.pubkey
    ledger.token_transfer(accounts.borrower_ata.pubkey, accounts.protocol_ata.pubkey,
                          borrower, total, {borrower})


def process_instruction(ledger: Ledger, accounts: Sequence[AccountMeta], instruction_data: bytes) -> None:
    """Dispatch on the eight-byte discriminator."""
    accounts = list(accounts)
    if len(accounts) < _ACCOUNT_COUNT:
        raise ProgramError(ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS)
    data = bytes(instruction_data)
    tag, rest = data[:8], data[8:]
    if tag == BORROW_DISCRIMINATOR:
        if len(rest) < _U64.size:
            raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)
        (amount,) = _U64.unpack_from(rest)
        borrow(ledger, FlashLoanAccounts(*accounts[:_ACCOUNT_COUNT]), amount)
    elif tag == REPAY_DISCRIMINATOR:
        repay(ledger, FlashLoanAccounts(*accounts[:_ACCOUNT_COUNT]))
    else:
        raise ProgramError(ErrorKind.INVALID_INSTRUCTION_DATA)


def process_instruction_chain(ledger: Ledger, instructions: Sequence[Instruction]) -> None:
    """Run instructions in order, publishing them in the instructions sysvar; stops at the first failure."""
    instructions = list(instructions)
    for index, ix in enumerate(instructions):
        ledger.get(INSTRUCTIONS_SYSVAR_ID).data = bytearray(build_instructions_data(instructions, index))
        if ix.program_id != PROGRAM_ID:
            raise ProgramError(ErrorKind.INCORRECT_PROGRAM_ID)
        process_instruction(ledger, ix.accounts, ix.data)