"""Program error values and the custom error codes of the on-chain programs."""

from __future__ import annotations

from enum import Enum, IntEnum


class ErrorKind(Enum):
    """Built-in kinds of program failure."""

    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_INSTRUCTION_DATA = "InvalidInstructionData"
    INVALID_ACCOUNT_DATA = "InvalidAccountData"
    ACCOUNT_DATA_TOO_SMALL = "AccountDataTooSmall"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INCORRECT_PROGRAM_ID = "IncorrectProgramId"
    MISSING_REQUIRED_SIGNATURE = "MissingRequiredSignature"
    ACCOUNT_ALREADY_INITIALIZED = "AccountAlreadyInitialized"
    UNINITIALIZED_ACCOUNT = "UninitializedAccount"
    NOT_ENOUGH_ACCOUNT_KEYS = "NotEnoughAccountKeys"
    ACCOUNT_BORROW_FAILED = "AccountBorrowFailed"
    MAX_SEED_LENGTH_EXCEEDED = "MaxSeedLengthExceeded"
    INVALID_SEEDS = "InvalidSeeds"
    INVALID_REALLOC = "InvalidRealloc"
    ARITHMETIC_OVERFLOW = "ArithmeticOverflow"
    ILLEGAL_OWNER = "IllegalOwner"
    INVALID_ACCOUNT_OWNER = "InvalidAccountOwner"
    IMMUTABLE = "Immutable"
    INCORRECT_AUTHORITY = "IncorrectAuthority"
    CUSTOM = "Custom"


class ProgramError(Exception):
    """A failed instruction: a built-in kind, or a custom numeric code."""

    def __init__(self, kind: ErrorKind, code: int | None = None) -> None:
        if kind is ErrorKind.CUSTOM and code is None:
            raise ValueError("a custom error needs a code")
        if kind is not ErrorKind.CUSTOM and code is not None:
            raise ValueError("only custom errors carry a code")
        self.kind = kind
        self.code = code
        super().__init__(str(self))

    @classmethod
    def custom(cls, code: int) -> ProgramError:
        """Build a custom error with the given code."""
        return cls(ErrorKind.CUSTOM, int(code))

    def __str__(self) -> str:
        if self.kind is ErrorKind.CUSTOM:
            return f"Custom({self.code})"
        return self.kind.value

    def __repr__(self) -> str:
        return f"ProgramError({self})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProgramError):
            return NotImplemented
        return self.kind is other.kind and self.code == other.code

    def __hash__(self) -> int:
        return hash((self.kind, self.code))


class _CodedError(IntEnum):
    """Custom error codes, each with a human readable message."""

    def __new__(cls, code: int, message: str):
        member = int.__new__(cls, code)
        member._value_ = code
        member.message = message
        return member

    def error(self) -> ProgramError:
        """The program error carrying this code."""
        return ProgramError.custom(int(self))


class ProtocolError(_CodedError):
    """Errors of the flash loan programs."""

    INVALID_IX = 6000, "Invalid instruction"
    INVALID_INSTRUCTION_INDEX = 6001, "Invalid instruction index"
    INVALID_AMOUNT = 6002, "Invalid amount"
    NOT_ENOUGH_FUNDS = 6003, "Not enough funds"
    PROGRAM_MISMATCH = 6004, "Program Mismatch"
    INVALID_PROGRAM = 6005, "Invalid program"
    INVALID_BORROWER_ATA = 6006, "Invalid borrower ATA"
    INVALID_PROTOCOL_ATA = 6007, "Invalid protocol ATA"
    MISSING_REPAY_IX = 6008, "Missing repay instruction"
    MISSING_BORROW_IX = 6009, "Missing borrow instruction"
    OVERFLOW = 6010, "Overflow"


class EscrowError(_CodedError):
    """Errors of the escrow program."""

    INVALID_AMOUNT = 6000, "Invalid amount"
    INVALID_MAKER = 6001, "Invalid maker"
    INVALID_MINT_A = 6002, "Invalid mint A"
    INVALID_MINT_B = 6003, "Invalid mint B"


class VaultError(_CodedError):
    """Errors of the vault program."""

    VAULT_ALREADY_EXISTS = 6000, "Vault already exists"
    INVALID_AMOUNT = 6001, "Invalid amount entered"