import pytest

from ledger_audit import codec


CIP19_HASH = "337b62cfff6403a06a3acbc34f8c46003c69fe79a3628cefa9c47251"
CIP19_MAINNET = "stake1uyehkck0lajq8gr28t9uxnuvgcqrc6070x3k9r8048z8y5gh6ffgw"
CIP19_TESTNET = "stake_test1uqehkck0lajq8gr28t9uxnuvgcqrc6070x3k9r8048z8y5gssrtvn"


def test_all_zero_hash_assumes_mainnet():
    addr = codec.to_canonical_address("00" * 28)
    assert addr.startswith("stake1")
    assert codec.is_stake_address(addr)


def test_e0_header_is_test_network():
    addr = codec.to_canonical_address("e0" + "00" * 28)
    assert addr.startswith("stake_test1")
    assert codec.is_stake_address(addr)


def test_e1_header_matches_bare_hash():
    assert codec.to_canonical_address("e1" + "00" * 28) == codec.to_canonical_address("00" * 28)


def test_known_reward_address_vectors():
    assert codec.to_canonical_address(CIP19_HASH) == CIP19_MAINNET
    assert codec.to_canonical_address("e1" + CIP19_HASH) == CIP19_MAINNET
    assert codec.to_canonical_address("e0" + CIP19_HASH) == CIP19_TESTNET


def test_hex_is_case_and_whitespace_insensitive():
    assert codec.to_canonical_address("  " + CIP19_HASH.upper() + "\n") == CIP19_MAINNET


@pytest.mark.parametrize(
    "value",
    [
        "f0" + "00" * 28,  # script/unsupported header
        "e2" + "00" * 28,
        "00" * 27,  # 54 chars
        "0" * 57,
        "00" * 30,
        "zz" * 28,  # right length, not hex
        "",
        None,
        1234,
    ],
)
def test_rejected_inputs_return_none(value):
    assert codec.to_canonical_address(value) is None


def test_bech32_passes_through_unchanged():
    assert codec.to_canonical_address(CIP19_MAINNET) == CIP19_MAINNET
    assert codec.to_canonical_address(CIP19_TESTNET) == CIP19_TESTNET


def test_idempotent():
    once = codec.to_canonical_address("ab" * 28)
    assert codec.to_canonical_address(once) == once


def test_is_stake_address_rejects_bad_checksum_and_junk():
    tampered = CIP19_MAINNET[:-1] + ("q" if CIP19_MAINNET[-1] != "q" else "p")
    assert codec.is_stake_address(tampered) is False
    assert codec.is_stake_address("stake1notreallyanaddress") is False
    assert codec.is_stake_address("addr1" + CIP19_MAINNET[6:]) is False
    assert codec.is_stake_address(None) is False
    assert codec.is_stake_address("") is False


def test_is_stake_address_rejects_mixed_case():
    mixed = CIP19_MAINNET[:10] + CIP19_MAINNET[10:].upper()
    assert codec.is_stake_address(mixed) is False


def test_is_stake_address_rejects_header_network_mismatch():
    # testnet header encoded under the mainnet prefix
    data = codec.convert_bits(bytes.fromhex("e0" + CIP19_HASH), 8, 5)
    forged = codec.bech32_encode("stake", data)
    assert codec.bech32_decode(forged) is not None
    assert codec.is_stake_address(forged) is False


def test_convert_bits_pads_final_group():
    assert codec.convert_bits([0xFF], 8, 5) == [31, 28]
    assert codec.convert_bits([31, 28], 5, 8, pad=False) == [0xFF]


@pytest.mark.parametrize(
    "value",
    [
        "stakeholder",
        "stake1notreallyanaddress",
        CIP19_MAINNET[:-1] + ("q" if CIP19_MAINNET[-1] != "q" else "p"),
    ],
)
def test_stake_prefixed_input_must_carry_a_valid_checksum(value):
    assert codec.to_canonical_address(value) is None


def test_bech32_input_is_lower_cased():
    assert codec.to_canonical_address(CIP19_MAINNET.upper()) == CIP19_MAINNET
