import pytest

from blueprog.addresses import Address
from blueprog.errors import ErrorKind, ProgramError
from blueprog.secp256r1 import (
    SECP256R1_PROGRAM_ID,
    SECP256R1_SIGNATURE_LENGTH,
    Secp256r1Instruction,
    SignatureOffsets,
)

TEST_DATA = bytes(
    [
        0x01, 0x00,
        0x31, 0x00,
        0xFF, 0xFF,
        0x10, 0x00,
        0xFF, 0xFF,
        0x71, 0x00,
        0xC4, 0x00,
        0xFF, 0xFF,
        0x03, 0x2E, 0x9C, 0xC2, 0x5F, 0xEB, 0xA1, 0x9F, 0x5C, 0xC1, 0x14, 0xF6, 0xED, 0xDD, 0x26,
        0xA7, 0x2B, 0x85, 0x54, 0x0A, 0x8B, 0xBD, 0x8F, 0xF0, 0x27, 0x8E, 0x20, 0x7B, 0xA8, 0xF1,
        0x75, 0xD0, 0xF4,
        0x9C, 0xA7, 0xC8, 0xB9, 0xC3, 0xC7, 0x16, 0x0A, 0x56, 0xB9, 0x1E, 0x38, 0xD8, 0x39, 0x9F,
        0xB6, 0x12, 0x54, 0x2E, 0xB4, 0x63, 0xAC, 0xA5, 0x85, 0x5E, 0xFB, 0xDA, 0xA4, 0x5C, 0xC3,
        0x4E, 0x31, 0x5C, 0x2B, 0x7D, 0x4D, 0x24, 0x32, 0x47, 0xFB, 0xDC, 0x4A, 0x1C, 0x26, 0xD7,
        0xBE, 0x31, 0xC0, 0xCF, 0x57, 0xDB, 0xE7, 0xAD, 0x27, 0xEB, 0xE2, 0x96, 0x1F, 0x2F, 0xB1,
        0xF8, 0x5D, 0x89, 0xE0,
        0x3E, 0x96, 0x6B, 0x97, 0xE5, 0xAA, 0xB7, 0xE3, 0x85, 0x7C, 0x1A, 0x72, 0xCB, 0x64, 0xAB,
        0x68, 0xDD, 0x66, 0xEC, 0xB4, 0xF4, 0x19, 0x93, 0x91, 0xC0, 0x60, 0x3B, 0xFB, 0xAB, 0xA3,
        0x62, 0x43, 0x45, 0x00, 0x00, 0x00, 0x00, 0xB5, 0x39, 0x76, 0x66, 0x48, 0x85, 0xAA, 0x6B,
        0xCE, 0xBF, 0xE5, 0x22, 0x62, 0xA4, 0x39, 0xA2, 0x00, 0x20, 0x58, 0xE3, 0xF5, 0x0A, 0x39,
        0xFE, 0x01, 0x25, 0xCA, 0xEC, 0x5B, 0x4C, 0x91, 0x79, 0xAF, 0xD9, 0x39, 0x2B, 0x62, 0xCB,
        0xC1, 0x2F, 0xBE, 0x82, 0x01, 0xD6, 0x91, 0x49, 0x7F, 0xBA, 0x9D, 0x31, 0xA5, 0x01, 0x02,
        0x03, 0x26, 0x20, 0x01, 0x21, 0x58, 0x20, 0x2E, 0x9C, 0xC2, 0x5F, 0xEB, 0xA1, 0x9F, 0x5C,
        0xC1, 0x14, 0xF6, 0xED, 0xDD, 0x26, 0xA7, 0x2B, 0x85, 0x54, 0x0A, 0x8B, 0xBD, 0x8F, 0xF0,
        0x27, 0x8E, 0x20, 0x7B, 0xA8, 0xF1, 0x75, 0xD0, 0xF4, 0x22, 0x58, 0x20, 0x9C, 0x73, 0x0D,
        0x51, 0x6C, 0xF4, 0xBA, 0x70, 0xA6, 0x6C, 0x36, 0x71, 0xEB, 0x99, 0x36, 0xD4, 0x3F, 0xE3,
        0x52, 0x78, 0x46, 0xAA, 0x73, 0x27, 0x54, 0x5B, 0x94, 0x10, 0xE4, 0x3D, 0xD1, 0xBD, 0x0E,
        0xF8, 0xAF, 0xA5, 0xEF, 0xB5, 0x28, 0x2E, 0xAC, 0xB0, 0xDD, 0x6C, 0x51, 0x8B, 0x2B, 0xEB,
        0xA0, 0xE6, 0x70, 0x6C, 0xBF, 0xBB, 0xDE, 0x79, 0x03, 0x12, 0x5F, 0x66, 0x6C, 0x38, 0xDA,
        0xAD,
    ]
)


@pytest.fixture
def secp_ix():
    return Secp256r1Instruction.parse(TEST_DATA)


def test_parse_keeps_whole_data():
    ix = Secp256r1Instruction.parse(TEST_DATA)
    assert len(ix.data) == 309
    assert ix.data == TEST_DATA


def test_program_id_text():
    assert SECP256R1_PROGRAM_ID.to_base58() == "Secp256r1SigVerify1111111111111111111111111"


def test_parse_instruction(secp_ix):
    assert secp_ix.num_signatures() == 1


def test_get_signer(secp_ix):
    signer = secp_ix.get_signer(0)
    assert signer[0] == 0x03
    assert signer == TEST_DATA[16:49]


def test_get_signature(secp_ix):
    signature = secp_ix.get_signature(0)
    assert signature == TEST_DATA[49:113]
    assert len(signature) == SECP256R1_SIGNATURE_LENGTH


def test_get_message_data(secp_ix):
    message_data = secp_ix.get_message_data(0)
    assert message_data == TEST_DATA[113:309]
    assert len(message_data) == 196


def test_unsafe_methods(secp_ix):
    assert secp_ix.get_signer_unchecked(0)[0] == 0x03
    assert len(secp_ix.get_signature_unchecked(0)) == SECP256R1_SIGNATURE_LENGTH
    assert len(secp_ix.get_message_data_unchecked(0)) == 196


def test_bounds_checking(secp_ix):
    with pytest.raises(ProgramError) as caught:
        secp_ix.get_signer(1)
    assert caught.value.kind is ErrorKind.INVALID_ARGUMENT
    with pytest.raises(ProgramError) as caught:
        secp_ix.get_signature(1)
    assert caught.value.kind is ErrorKind.INVALID_ARGUMENT
    with pytest.raises(ProgramError) as caught:
        secp_ix.get_message_data(1)
    assert caught.value.kind is ErrorKind.INVALID_ARGUMENT


@pytest.mark.parametrize("data", [bytes([0x01]), bytes([0x02, 0x00])])
def test_invalid_instruction_data(data):
    with pytest.raises(ProgramError) as caught:
        Secp256r1Instruction.parse(data)
    assert caught.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_offset_methods_directly(secp_ix):
    offset = secp_ix.offsets[0]
    assert offset.get_signer(secp_ix.data)[0] == 0x03
    assert len(offset.get_signature(secp_ix.data)) == SECP256R1_SIGNATURE_LENGTH
    assert len(offset.get_message_data(secp_ix.data)) == 196
    assert offset.get_signer_unchecked(secp_ix.data)[0] == 0x03
    assert len(offset.get_signature_unchecked(secp_ix.data)) == SECP256R1_SIGNATURE_LENGTH
    assert len(offset.get_message_data_unchecked(secp_ix.data)) == 196


def test_offsets_parse_matches_header_layout():
    offset = SignatureOffsets.parse(TEST_DATA[2:16])
    assert offset.signature_offset == 0x31
    assert offset.public_key_offset == 0x10
    assert offset.message_data_offset == 0x71
    assert offset.message_data_size == 0xC4


def test_offsets_parse_short_data():
    with pytest.raises(ProgramError) as caught:
        SignatureOffsets.parse(TEST_DATA[2:10])
    assert caught.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_non_local_instruction_index_rejected():
    data = bytearray(TEST_DATA)
    data[8:10] = b"\x00\x00"
    ix = Secp256r1Instruction.parse(bytes(data))
    with pytest.raises(ProgramError) as caught:
        ix.get_signer(0)
    assert caught.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA
    assert ix.get_signature(0) == TEST_DATA[49:113]


def test_out_of_range_offset_rejected():
    ix = Secp256r1Instruction.parse(TEST_DATA[:100])
    assert ix.get_signer(0) == TEST_DATA[16:49]
    with pytest.raises(ProgramError) as caught:
        ix.get_signature(0)
    assert caught.value.kind is ErrorKind.INVALID_INSTRUCTION_DATA


def test_from_introspected_checks_program():
    ix = Secp256r1Instruction.from_introspected(SECP256R1_PROGRAM_ID, TEST_DATA)
    assert ix.num_signatures() == 1
    with pytest.raises(ProgramError) as caught:
        Secp256r1Instruction.from_introspected(Address(bytes(32)), TEST_DATA)
    assert caught.value.kind is ErrorKind.INCORRECT_PROGRAM_ID