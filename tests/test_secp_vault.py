import struct

import pytest

from blueprog.addresses import PROGRAM_ID, SYSTEM_PROGRAM_ID, Address, find_program_address
from blueprog.errors import ErrorKind, ProgramError
from blueprog.instruction_sysvar import (
    INSTRUCTIONS_SYSVAR_ID,
    AccountMeta,
    Instruction,
    build_instructions_data,
)
from blueprog.ledger import Account, Ledger
from blueprog.secp256r1 import SECP256R1_PROGRAM_ID
from blueprog.secp_vault import Deposit, DepositInstructionData, Withdraw, process_instruction

PAYER = Address(bytes([3]) * 32)
OTHER = Address(bytes([4]) * 32)
PUBKEY = b"\x02" + bytes(range(32))
START = 1_000_000_000
AMOUNT = 500_000
EXPIRY = 1_700_000_000
VAULT, BUMP = find_program_address([b"vault", PUBKEY[:1], PUBKEY[1:]], PROGRAM_ID)


def make_ledger():
    return Ledger([Account(PAYER, lamports=START)])


def deposit_metas(vault=VAULT, signer=True):
    return [
        AccountMeta(PAYER, is_signer=signer, is_writable=True),
        AccountMeta(vault, is_writable=True),
        AccountMeta(SYSTEM_PROGRAM_ID),
    ]


def withdraw_metas(sysvar=INSTRUCTIONS_SYSVAR_ID):
    return [
        AccountMeta(PAYER, is_signer=True, is_writable=True),
        AccountMeta(VAULT, is_writable=True),
        AccountMeta(sysvar),
        AccountMeta(SYSTEM_PROGRAM_ID),
    ]


def deposit_data(amount=AMOUNT):
    return b"\x00" + PUBKEY + struct.pack("<Q", amount)


def secp_data(message, pubkey=PUBKEY):
    pubkey_offset = 16
    signature_offset = pubkey_offset + len(pubkey)
    message_offset = signature_offset + 64
    offsets = struct.pack(
        "<7H", signature_offset, 0xFFFF, pubkey_offset, 0xFFFF, message_offset, len(message), 0xFFFF
    )
    return bytes([1, 0]) + offsets + pubkey + bytes(64) + message


def sysvar_data(message, secp_program=SECP256R1_PROGRAM_ID, bump=BUMP, with_secp=True):
    instructions = [Instruction(PROGRAM_ID, tuple(withdraw_metas()), bytes([1, bump]))]
    if with_secp:
        instructions.append(Instruction(secp_program, (), secp_data(message)))
    return build_instructions_data(instructions, 0)


def signed_message(payer=PAYER, expiry=EXPIRY):
    return bytes(payer) + struct.pack("<q", expiry)


def funded_ledger():
    ledger = make_ledger()
    process_instruction(ledger, deposit_metas(), deposit_data(), b"", 0)
    return ledger


def test_parse_round_trip():
    parsed = DepositInstructionData.parse(PUBKEY + struct.pack("<Q", AMOUNT))
    assert parsed.pubkey == PUBKEY
    assert parsed.amount == AMOUNT


@pytest.mark.parametrize("data", [b"", PUBKEY, PUBKEY + bytes(9)])
def test_parse_rejects_wrong_length(data):
    with pytest.raises(ProgramError) as info:
        DepositInstructionData.parse(data)
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_deposit_moves_lamports_into_vault():
    ledger = funded_ledger()
    assert ledger.get(VAULT).lamports == AMOUNT
    assert ledger.get(PAYER).lamports == START - AMOUNT


def test_deposit_rejects_vault_of_another_key():
    ledger = make_ledger()
    with pytest.raises(ProgramError) as info:
        process_instruction(ledger, deposit_metas(vault=OTHER), deposit_data(), b"", 0)
    assert info.value.kind is ErrorKind.INVALID_ACCOUNT_OWNER
    assert ledger.get(PAYER).lamports == START


def test_deposit_requires_signer():
    with pytest.raises(ProgramError) as info:
        Deposit.try_from(make_ledger(), deposit_metas(signer=False), deposit_data()[1:])
    assert info.value.kind is ErrorKind.INVALID_ACCOUNT_OWNER


def test_deposit_rejects_funded_vault():
    ledger = funded_ledger()
    with pytest.raises(ProgramError) as info:
        process_instruction(ledger, deposit_metas(), deposit_data(), b"", 0)
    assert info.value.kind is ErrorKind.INVALID_ACCOUNT_DATA


def test_deposit_needs_exactly_three_accounts():
    with pytest.raises(ProgramError) as info:
        process_instruction(make_ledger(), deposit_metas()[:2], deposit_data(), b"", 0)
    assert info.value.kind is ErrorKind.NOT_ENOUGH_ACCOUNT_KEYS


@pytest.mark.parametrize("now", [EXPIRY - 1, EXPIRY])
def test_withdraw_returns_everything(now):
    ledger = funded_ledger()
    process_instruction(ledger, withdraw_metas(), bytes([1, BUMP]), sysvar_data(signed_message()), now)
    assert ledger.get(VAULT).lamports == 0
    assert ledger.get(PAYER).lamports == START


def test_withdraw_rejects_expired_message():
    ledger = funded_ledger()
    with pytest.raises(ProgramError) as info:
        process_instruction(ledger, withdraw_metas(), bytes([1, BUMP]),
                            sysvar_data(signed_message()), EXPIRY + 1)
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA
    assert ledger.get(VAULT).lamports == AMOUNT


def test_withdraw_rejects_message_for_other_payer():
    ledger = funded_ledger()
    with pytest.raises(ProgramError) as info:
        process_instruction(ledger, withdraw_metas(), bytes([1, BUMP]),
                            sysvar_data(signed_message(payer=OTHER)), 0)
    assert info.value.kind is ErrorKind.INVALID_ACCOUNT_OWNER


@pytest.mark.parametrize("message", [bytes(PAYER)[:10], bytes(PAYER) + bytes(4)])
def test_withdraw_rejects_malformed_message(message):
    with pytest.raises(ProgramError) as info:
        process_instruction(funded_ledger(), withdraw_metas(), bytes([1, BUMP]), sysvar_data(message), 0)
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_withdraw_rejects_other_verify_program():
    data = sysvar_data(signed_message(), secp_program=OTHER)
    with pytest.raises(ProgramError) as info:
        process_instruction(funded_ledger(), withdraw_metas(), bytes([1, BUMP]), data, 0)
    assert info.value.kind is ErrorKind.INCORRECT_PROGRAM_ID


def test_withdraw_needs_following_instruction():
    data = sysvar_data(signed_message(), with_secp=False)
    with pytest.raises(ProgramError) as info:
        process_instruction(funded_ledger(), withdraw_metas(), bytes([1, BUMP]), data, 0)
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_withdraw_with_wrong_bump_is_not_signed():
    ledger = funded_ledger()
    with pytest.raises(ProgramError) as info:
        process_instruction(ledger, withdraw_metas(), bytes([1, BUMP ^ 1]), sysvar_data(signed_message()), 0)
    assert info.value.kind is ErrorKind.MISSING_REQUIRED_SIGNATURE
    assert ledger.get(VAULT).lamports == AMOUNT


def test_withdraw_requires_bump_byte():
    with pytest.raises(ProgramError) as info:
        Withdraw.try_from(funded_ledger(), withdraw_metas(), b"")
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_withdraw_rejects_empty_vault():
    with pytest.raises(ProgramError) as info:
        Withdraw.try_from(make_ledger(), withdraw_metas(), bytes([BUMP]))
    assert info.value.kind is ErrorKind.INVALID_ACCOUNT_DATA


def test_withdraw_rejects_wrong_sysvar_account():
    withdraw = Withdraw.try_from(funded_ledger(), withdraw_metas(sysvar=OTHER), bytes([BUMP]))
    assert withdraw.bump == BUMP
    with pytest.raises(ProgramError) as info:
        withdraw.process(funded_ledger(), sysvar_data(signed_message()), 0)
    assert info.value.kind is ErrorKind.INVALID_ARGUMENT


@pytest.mark.parametrize("data", [b"", b"\x07"])
def test_unknown_instruction(data):
    with pytest.raises(ProgramError) as info:
        process_instruction(make_ledger(), deposit_metas(), data, b"", 0)
    assert info.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA