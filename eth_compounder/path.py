"""Swap route encoding.

Routes use the Uniswap v3 packed path format, so a route through two pools

- pool1: token1/token2
- pool2: token2/token3

is encoded as ``token1 - pool1's fee - token2 - pool2's fee - token3``,
in which each token address is 20 bytes and each fee is 3 bytes.

`Read more <https://github.com/Uniswap/v3-periphery/blob/22a7ead071fff53f00d9ddc13434f285f4ed5c7d/contracts/libraries/Path.sol>`__.
"""

from dataclasses import dataclass
from enum import IntEnum

from eth_typing import HexAddress
from eth_utils import to_checksum_address


class FeeTier(IntEnum):
    """Pool fee tiers. Expressed as raw_fee value found on smart contracts."""

    #: 0.01% fee tier
    fee_1bps = 100

    #: 0.05% fee tier
    fee_5bps = 500

    #: 0.30% fee tier
    fee_30bps = 3000

    #: 1% fee tier
    fee_100bps = 10000


#: Raw fee units per 100%
FEE_DENOMINATOR = 1_000_000


def encode_path(
    path: list[HexAddress],
    fees: list[int],
) -> bytes:
    """Encode the routing path to be suitable to use with a quoter and a swap router.

    :param path: List of token addresses how to route the trade
    :param fees: List of trading fees of the pools in the route
    """
    assert len(fees) == len(path) - 1, f"Expected {len(path) - 1} pool fees, got {len(fees)}"

    encoded = b""
    for index, token in enumerate(path):
        encoded += bytes.fromhex(token[2:])
        if index < len(fees):
            encoded += int.to_bytes(fees[index], 3, "big")

    return encoded


def decode_path(full_path_encoded: bytes) -> list:
    """Decodes the path.

    :param full_path_encoded:
        Encoded path as bytes

    :returns:
        fully decoded path array including addresses and fees
    """

    assert type(full_path_encoded) == bytes, "encoded path must be provided as bytes"

    path_pos = 0
    full_path_decoded = []
    # read alternating 20 and 3 byte chunks from the encoded path,
    # store each address (hex) and fee (int)

    byte_length = 20
    while True:
        # stop at the end
        if path_pos == len(full_path_encoded):
            break
        elif byte_length == 20 and len(full_path_encoded) >= path_pos + byte_length:
            address = full_path_encoded[path_pos : path_pos + byte_length].hex()
            full_path_decoded.append(to_checksum_address(address))
        elif byte_length == 3 and len(full_path_encoded) >= path_pos + byte_length:
            fee = int(
                full_path_encoded[path_pos : path_pos + byte_length].hex(),
                16,
            )
            full_path_decoded.append(fee)
        else:
            raise IndexError("Bad path")

        path_pos += byte_length
        byte_length = 3 if byte_length == 20 else 20

    return full_path_decoded


def split_hops(full_path_encoded: bytes) -> list[tuple[HexAddress, int, HexAddress]]:
    """Break an encoded path into ``(token_in, fee, token_out)`` hops."""
    decoded = decode_path(full_path_encoded)
    if len(decoded) < 3 or len(decoded) % 2 == 0:
        raise IndexError("Bad path")
    return [(decoded[i], decoded[i + 1], decoded[i + 2]) for i in range(0, len(decoded) - 2, 2)]


@dataclass(frozen=True)
class SwapRoute:
    """A multi-hop route with one fee tier per hop."""

    #: Tokens from input to output
    tokens: tuple[HexAddress, ...]

    #: Pool fees, one less than tokens
    fees: tuple[int, ...]

    def __post_init__(self):
        assert len(self.tokens) >= 2, f"Route needs at least two tokens: {self.tokens}"
        assert len(self.fees) == len(self.tokens) - 1, f"Expected {len(self.tokens) - 1} pool fees, got {len(self.fees)}"
        for fee in self.fees:
            assert fee > 0, "fee must be non-zero"

    @staticmethod
    def create(tokens: list[HexAddress], fees: list[int]) -> "SwapRoute":
        return SwapRoute(tokens=tuple(tokens), fees=tuple(fees))

    @property
    def token_in(self) -> HexAddress:
        return self.tokens[0]

    @property
    def token_out(self) -> HexAddress:
        return self.tokens[-1]

    def encode(self) -> bytes:
        return encode_path(list(self.tokens), list(self.fees))
