"""Address validation and SPL account decoding."""

import re
import struct
from typing import Optional

from solders.pubkey import Pubkey

from core.errors import InvalidInputError
from core.types import MintState, PublicAddress

# Size of an SPL token mint account
MINT_ACCOUNT_SIZE = 82

_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")

# COption<Pubkey> mint_authority, u64 supply, u8 decimals, bool is_initialized,
# COption<Pubkey> freeze_authority
_MINT_LAYOUT = struct.Struct("<I32sQBBI32s")


def parse_address(value: object) -> Pubkey:
    """Parse a base58 public key.

    Args:
        value: Address string or Pubkey

    Returns:
        Pubkey

    Raises:
        InvalidInputError: If the value is not a well-formed address
    """
    if isinstance(value, Pubkey):
        return value

    text = str(value).strip() if value is not None else ""
    if not _BASE58_RE.match(text):
        raise InvalidInputError(f"Malformed address: {text!r}")

    try:
        return Pubkey.from_string(text)
    except ValueError as e:
        raise InvalidInputError(f"Malformed address {text!r}: {e}")


def is_valid_address(value: object) -> bool:
    try:
        parse_address(value)
    except InvalidInputError:
        return False
    return True


def _optional_key(tag: int, raw: bytes) -> Optional[PublicAddress]:
    if tag == 0:
        return None
    return PublicAddress(str(Pubkey.from_bytes(raw)))


def decode_mint(mint_address: str, data: bytes) -> MintState:
    """Decode raw mint account data.

    Raises:
        InvalidInputError: If the data is not a mint account
    """
    if len(data) < MINT_ACCOUNT_SIZE:
        raise InvalidInputError(
            f"Account {mint_address[:16]}... is not a mint ({len(data)} bytes)"
        )

    (
        authority_tag,
        authority,
        supply,
        decimals,
        is_initialized,
        freeze_tag,
        freeze_authority,
    ) = _MINT_LAYOUT.unpack_from(data)

    return MintState(
        mint_address=PublicAddress(mint_address),
        supply=supply,
        decimals=decimals,
        is_initialized=bool(is_initialized),
        mint_authority=_optional_key(authority_tag, authority),
        freeze_authority=_optional_key(freeze_tag, freeze_authority),
    )
