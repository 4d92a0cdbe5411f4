# blueprog

An in-memory model of a small set of on-chain financial programs: a lamport
vault, a vault unlocked by a secp256r1-signed message, a two-token escrow and
a token flash loan. The programs run against a `Ledger` of accounts, so their
account checks and their lamport and token movements can be exercised from
plain Python. The package has no dependencies outside the standard library.

## Install

```
pip install .
```

For development with tests:

```
pip install ".[test]"
pytest
```

## Modules

- `blueprog.addresses`: the 32-byte `Address` type (`from_base58`,
  `to_base58`), `b58encode` / `b58decode`, `is_on_curve`, and program-derived
  addresses: `create_program_address`, `derive_address` and
  `find_program_address` (which returns the address and its bump). Also the
  constants `PROGRAM_ID` and `SYSTEM_PROGRAM_ID`.
- `blueprog.errors`: `ProgramError`, carrying an `ErrorKind` or, through
  `ProgramError.custom(code)`, a numeric code; and the custom code enums
  `ProtocolError`, `EscrowError` and `VaultError`, whose members have a
  `message` and an `error()` method giving the matching `ProgramError`.
- `blueprog.ledger`: `Account`, the `Mint` and `TokenAccount` record layouts
  (`load` / `pack`), `associated_token_address`, and `Ledger`, which stores
  accounts by address and offers `transfer_lamports`, `create_account`,
  `create_associated_token_account`, `token_transfer`,
  `close_token_account` and `close_account`. Unknown addresses read as empty
  system-owned accounts. Rent is a fixed rate per byte plus a 128-byte
  overhead.
- `blueprog.escrow_state`: the `Escrow` record (113 bytes) and the
  `EscrowConfig` record (the same fields behind a one-byte discriminator).
- `blueprog.instruction_sysvar`: `Instruction`, `AccountMeta`, and the
  instructions sysvar: `build_instructions_data` writes it,
  `instruction_count`, `current_instruction_index` and `load_instruction`
  read it, giving an `InstructionView` with `account_pubkey(index)`.
- `blueprog.secp256r1`: `Secp256r1Instruction` and `SignatureOffsets`, which
  read public keys, signatures and messages out of secp256r1 verify
  instruction data. Only data held in the same instruction is supported.
- `blueprog.vault`: `Deposit`, `Withdraw` and `process_instruction` for a vault
  at the address derived from `b"vault"` and its owner.
- `blueprog.anchor_vault`: `deposit`, `withdraw` and `minimum_balance`; a
  deposit must go into an empty vault and exceed `minimum_balance(0)`.
- `blueprog.secp_vault`: `DepositInstructionData`, `Deposit`, `Withdraw` and
  `process_instruction` for a vault keyed by a compressed secp256r1 public key.
  A withdrawal reads the secp256r1 instruction that follows it in the
  instructions sysvar; its message must be the payer's address followed by an
  eight-byte expiry time, which must not be earlier than `now`.
- `blueprog.escrow`: `MakeInstructionData`, `Make`, `Take`, `Refund` and
  `process_instruction` (first byte 0, 1 or 2).
- `blueprog.flash_loan`: `FlashLoanAccounts`, `borrow`, `repay`,
  `process_instruction` and `process_instruction_chain`. A borrow must be the
  first instruction and the last instruction must be a repay naming the same
  token accounts; the repay returns the borrowed amount plus a 5% fee.

## Example

```python
from blueprog import vault
from blueprog.addresses import PROGRAM_ID, SYSTEM_PROGRAM_ID, Address, find_program_address
from blueprog.instruction_sysvar import AccountMeta
from blueprog.ledger import Account, Ledger

owner = Address(bytes([7]) * 32)
ledger = Ledger([Account(owner, lamports=1_000_000)])
vault_key, _ = find_program_address([b"vault", owner], PROGRAM_ID)
accounts = [
    AccountMeta(owner, is_signer=True, is_writable=True),
    AccountMeta(vault_key, is_writable=True),
    AccountMeta(SYSTEM_PROGRAM_ID),
]

vault.process_instruction(ledger, accounts, bytes([0]) + (500_000).to_bytes(8, "little"))
assert ledger.get(vault_key).lamports == 500_000

vault.process_instruction(ledger, accounts, bytes([1]))
assert ledger.get(owner).lamports == 1_000_000
```

A failed program check raises `blueprog.errors.ProgramError`; its `kind`
tells which check failed and, for custom errors, `code` carries the
program's code.

## What it does not do

- It does not verify secp256r1 signatures. `blueprog.secp256r1` only locates
  the key, signature and message inside the instruction data, and
  `blueprog.secp_vault` trusts that the verify instruction has been checked.
- There is no network, no transactions beyond `process_instruction_chain`, no
  fees or compute limits, and no storage: a `Ledger` lives in memory only.
- There is no command-line program; everything is used as a library.