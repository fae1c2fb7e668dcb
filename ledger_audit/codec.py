"""Stake address codec.

Converts raw reward-credential hex (as handed out by browser wallets) into
canonical Bech32 stake addresses, and checks that a string is a well-formed
stake address. Everything here is pure: no I/O, no logging, and failures are
reported as ``None`` / ``False`` rather than exceptions.

Accepted inputs for :func:`to_canonical_address`:
- an address that is already Bech32 (``stake1...`` / ``stake_test1...``),
  returned unchanged;
- 56 hex chars: a bare 28-byte credential hash. The network cannot be told from
  the hash alone, so mainnet is assumed;
- 58 hex chars: header byte + hash, where ``e0`` is a test network and ``e1``
  is mainnet. Other header bytes (script credentials etc.) are rejected.
"""

from typing import Iterable, List, Optional, Tuple

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)

MAINNET_HEADER = 0xE1
TESTNET_HEADER = 0xE0
MAINNET_PREFIX = "stake"
TESTNET_PREFIX = "stake_test"

HEADER_FOR_PREFIX = {MAINNET_PREFIX: MAINNET_HEADER, TESTNET_PREFIX: TESTNET_HEADER}
PREFIX_FOR_HEADER = {header: prefix for prefix, header in HEADER_FOR_PREFIX.items()}

HASH_HEX_LEN = 56
ADDRESS_HEX_LEN = 58
CHECKSUM_LEN = 6


## --- bech32 primitives ---------------------------------------------------


def polymod(values: Iterable[int]) -> int:
    chk = 1
    for v in values:
        top = chk >> 25
        chk = ((chk & 0x1FFFFFF) << 5) ^ v
        for i, gen in enumerate(GENERATORS):
            if (top >> i) & 1:
                chk ^= gen
    return chk


def hrp_expand(hrp: str) -> List[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def create_checksum(hrp: str, data: List[int]) -> List[int]:
    values = hrp_expand(hrp) + data + [0] * CHECKSUM_LEN
    mod = polymod(values) ^ 1
    return [(mod >> 5 * (5 - i)) & 31 for i in range(CHECKSUM_LEN)]


def verify_checksum(hrp: str, data: List[int]) -> bool:
    return polymod(hrp_expand(hrp) + data) == 1


def convert_bits(
    data: Iterable[int], from_bits: int, to_bits: int, pad: bool = True
) -> Optional[List[int]]:
    """Regroup a sequence of ``from_bits``-wide values into ``to_bits``-wide ones.

    Bits are consumed most-significant first. With ``pad`` the final partial
    group is zero-padded; without it, leftover bits must be zero padding of
    less than ``from_bits`` bits, otherwise ``None`` is returned.
    """
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            return None
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (to_bits - bits)) & maxv)
    elif bits >= from_bits or ((acc << (to_bits - bits)) & maxv):
        return None
    return ret


def bech32_encode(hrp: str, data: List[int]) -> str:
    combined = data + create_checksum(hrp, data)
    return hrp + "1" + "".join(CHARSET[d] for d in combined)


def bech32_decode(address: str) -> Optional[Tuple[str, List[int]]]:
    """Split a Bech32 string into (hrp, 5-bit data) after checking its checksum.

    Mixed case is refused; the result excludes the checksum symbols.
    """
    if not isinstance(address, str):
        return None
    if address.lower() != address and address.upper() != address:
        return None
    address = address.lower()
    sep = address.rfind("1")
    if sep < 1 or sep + CHECKSUM_LEN + 1 > len(address):
        return None
    hrp = address[:sep]
    if any(ord(c) < 33 or ord(c) > 126 for c in hrp):
        return None
    try:
        data = [CHARSET.index(c) for c in address[sep + 1:]]
    except ValueError:
        return None
    if not verify_checksum(hrp, data):
        return None
    return hrp, data[:-CHECKSUM_LEN]


## --- stake addresses -----------------------------------------------------


def is_bech32_form(value: str) -> bool:
    return value.startswith(MAINNET_PREFIX)


def to_canonical_address(value: str) -> Optional[str]:
    """Return the Bech32 stake address for ``value`` or ``None`` on failure."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    if not value:
        return None
    if is_bech32_form(value):
        return value if is_stake_address(value) else None

    if len(value) == HASH_HEX_LEN:
        # network ambiguous for a bare hash; assume mainnet
        value = f"{MAINNET_HEADER:02x}" + value
    elif len(value) != ADDRESS_HEX_LEN:
        return None

    try:
        raw = bytes.fromhex(value)
    except ValueError:
        return None
    prefix = PREFIX_FOR_HEADER.get(raw[0])
    if prefix is None:
        return None
    return bech32_encode(prefix, convert_bits(raw, 8, 5))


def is_stake_address(address: Optional[str]) -> bool:
    """True when ``address`` is a checksummed stake address for a known network."""
    if not address:
        return False
    decoded = bech32_decode(address)
    if decoded is None:
        return False
    hrp, data = decoded
    header = HEADER_FOR_PREFIX.get(hrp)
    if header is None:
        return False
    raw = convert_bits(data, 5, 8, pad=False)
    if raw is None or len(raw) != ADDRESS_HEX_LEN // 2:
        return False
    return raw[0] == header
