"""Extended public key handling: prefix detection, parsing and address derivation.

Supported prefixes (SLIP-132):
    xpub / tpub: BIP44 legacy P2PKH
    ypub / upub: BIP49 nested SegWit P2SH-P2WPKH
    zpub / vpub: BIP84 native SegWit P2WPKH

Taproot (BIP86) has no dedicated prefix; pass ``address_type=AddressType.TAPROOT``
to derive P2TR addresses from an xpub/tpub.
"""

import logging

from bip_utils import (
    Base58ChecksumError,
    Base58Decoder,
    Bech32ChecksumError,
    Bip32KeyError,
    Bip32KeyNetVersions,
    Bip32Slip10Secp256k1,
    P2PKHAddrEncoder,
    P2SHAddrEncoder,
    P2TRAddrEncoder,
    P2WPKHAddrEncoder,
    SegwitBech32Decoder,
)
from pydantic import BaseModel

from walletfeed.domain.enums import AddressType, Network
from walletfeed.exceptions import InvalidAddressError, InvalidXpubError

logger = logging.getLogger(__name__)

# prefix → (address type, is_testnet, public version, private version)
XPUB_PREFIXES: dict[str, tuple[AddressType, bool, str, str]] = {
    "xpub": (AddressType.LEGACY, False, "0488b21e", "0488ade4"),
    "ypub": (AddressType.NESTED_SEGWIT, False, "049d7cb2", "049d7878"),
    "zpub": (AddressType.NATIVE_SEGWIT, False, "04b24746", "04b2430c"),
    "tpub": (AddressType.LEGACY, True, "043587cf", "04358394"),
    "upub": (AddressType.NESTED_SEGWIT, True, "044a5262", "044a4e28"),
    "vpub": (AddressType.NATIVE_SEGWIT, True, "045f1c76", "045f18bc"),
}

# Base58 version bytes: (P2PKH, P2SH)
_BASE58_VERSIONS = {False: (b"\x00", b"\x05"), True: (b"\x6f", b"\xc4")}
_BECH32_HRP = {False: "bc", True: "tb"}

RECEIVING_CHAIN = 0
CHANGE_CHAIN = 1


class XpubInfo(BaseModel):
    original: str
    address_type: AddressType
    is_testnet: bool
    fingerprint: str  # hash160 of the key, first 4 bytes, hex
    depth: int

    @property
    def network(self) -> Network:
        return Network.BITCOIN_TESTNET if self.is_testnet else Network.BITCOIN


class DerivedAddress(BaseModel):
    address: str
    derivation_path: str  # relative to the xPub, e.g. "0/3"
    index: int
    is_change: bool
    address_type: AddressType


class XpubPortfolio(BaseModel):
    info: XpubInfo
    receiving_addresses: list[DerivedAddress]
    change_addresses: list[DerivedAddress]

    @property
    def all_addresses(self) -> list[DerivedAddress]:
        return self.receiving_addresses + self.change_addresses


def is_xpub(value: str) -> bool:
    value = value.strip()
    return 111 <= len(value) <= 112 and value[:4] in XPUB_PREFIXES


def detect_xpub_type(xpub: str) -> tuple[AddressType, bool]:
    """Address type and testnet flag from the key prefix."""
    prefix = xpub.strip()[:4]
    if prefix not in XPUB_PREFIXES:
        raise InvalidXpubError(
            f"Unknown xPub prefix: {prefix}. Expected xpub/ypub/zpub (mainnet) or tpub/upub/vpub (testnet)"
        )
    address_type, is_testnet, _, _ = XPUB_PREFIXES[prefix]
    return address_type, is_testnet


def _load(xpub: str) -> Bip32Slip10Secp256k1:
    xpub = xpub.strip()
    detect_xpub_type(xpub)
    _, _, pub_ver, priv_ver = XPUB_PREFIXES[xpub[:4]]
    net_ver = Bip32KeyNetVersions(bytes.fromhex(pub_ver), bytes.fromhex(priv_ver))
    try:
        key = Bip32Slip10Secp256k1.FromExtendedKey(xpub, net_ver)
    except (Bip32KeyError, Base58ChecksumError, ValueError) as e:
        raise InvalidXpubError(f"Invalid xPub: {e}") from e
    if not key.IsPublicOnly():
        raise InvalidXpubError("Extended private keys are not accepted")
    return key


def parse_xpub(xpub: str) -> XpubInfo:
    if not is_xpub(xpub):
        raise InvalidXpubError(
            "Invalid xPub format. Must start with xpub/ypub/zpub/tpub/upub/vpub and be 111-112 characters"
        )
    key = _load(xpub)
    address_type, is_testnet = detect_xpub_type(xpub)
    return XpubInfo(
        original=xpub.strip(),
        address_type=address_type,
        is_testnet=is_testnet,
        fingerprint=key.FingerPrint().ToBytes().hex(),
        depth=key.Depth().ToInt(),
    )


def encode_address(public_key, address_type: AddressType, is_testnet: bool) -> str:
    p2pkh_ver, p2sh_ver = _BASE58_VERSIONS[is_testnet]
    hrp = _BECH32_HRP[is_testnet]
    if address_type == AddressType.LEGACY:
        return P2PKHAddrEncoder.EncodeKey(public_key, net_ver=p2pkh_ver)
    if address_type == AddressType.NESTED_SEGWIT:
        return P2SHAddrEncoder.EncodeKey(public_key, net_ver=p2sh_ver)
    if address_type == AddressType.NATIVE_SEGWIT:
        return P2WPKHAddrEncoder.EncodeKey(public_key, hrp=hrp, wit_ver=0)
    return P2TRAddrEncoder.EncodeKey(public_key, hrp=hrp)


def derive_addresses(
    xpub: str,
    receiving_count: int = 20,
    change_count: int = 10,
    address_type: AddressType | None = None,
) -> XpubPortfolio:
    """Derive receiving (0/i) and change (1/i) addresses from an account-level xPub."""
    info = parse_xpub(xpub)
    kind = address_type or info.address_type
    if kind != info.address_type:
        logger.info("Deriving %s addresses from a %s key", kind.value, xpub[:4])
        info = info.model_copy(update={"address_type": kind})
    key = _load(xpub)

    def chain(branch: int, count: int) -> list[DerivedAddress]:
        branch_key = key.ChildKey(branch)
        out = []
        for i in range(count):
            public_key = branch_key.ChildKey(i).PublicKey().KeyObject()
            out.append(
                DerivedAddress(
                    address=encode_address(public_key, kind, info.is_testnet),
                    derivation_path=f"{branch}/{i}",
                    index=i,
                    is_change=branch == CHANGE_CHAIN,
                    address_type=kind,
                )
            )
        return out

    return XpubPortfolio(
        info=info,
        receiving_addresses=chain(RECEIVING_CHAIN, receiving_count),
        change_addresses=chain(CHANGE_CHAIN, change_count),
    )


def validate_bitcoin_address(address: str, network: Network = Network.BITCOIN) -> AddressType:
    """Check the checksum and network of a Bitcoin address and return its type."""
    address = address.strip()
    if not address:
        raise InvalidAddressError("Address is empty")
    is_testnet = network == Network.BITCOIN_TESTNET
    hrp = _BECH32_HRP[is_testnet]

    if address.lower().startswith(hrp + "1"):
        try:
            witness_version, program = SegwitBech32Decoder.Decode(hrp, address)
        except (Bech32ChecksumError, ValueError) as e:
            raise InvalidAddressError(f"Invalid Bitcoin address: {address}") from e
        if witness_version == 1 and len(program) == 32:
            return AddressType.TAPROOT
        if witness_version == 0:
            return AddressType.NATIVE_SEGWIT
        raise InvalidAddressError(f"Unsupported witness version {witness_version}: {address}")

    try:
        payload = Base58Decoder.CheckDecode(address)
    except (Base58ChecksumError, ValueError) as e:
        raise InvalidAddressError(f"Invalid Bitcoin address: {address}") from e
    p2pkh_ver, p2sh_ver = _BASE58_VERSIONS[is_testnet]
    if len(payload) == 21 and payload[:1] == p2pkh_ver:
        return AddressType.LEGACY
    if len(payload) == 21 and payload[:1] == p2sh_ver:
        return AddressType.NESTED_SEGWIT
    raise InvalidAddressError(f"Address {address} is not a {network.value} address")
