from enum import Enum


class AddressType(str, Enum):
    """Bitcoin address family, inferred from the extended key prefix."""

    LEGACY = "legacy"  # BIP44 P2PKH, 1...
    NESTED_SEGWIT = "nested_segwit"  # BIP49 P2SH-P2WPKH, 3...
    NATIVE_SEGWIT = "native_segwit"  # BIP84 P2WPKH, bc1q...
    TAPROOT = "taproot"  # BIP86 P2TR, bc1p...

    @property
    def display_name(self) -> str:
        return {
            AddressType.LEGACY: "Legacy (P2PKH)",
            AddressType.NESTED_SEGWIT: "Nested SegWit (P2SH-P2WPKH)",
            AddressType.NATIVE_SEGWIT: "Native SegWit (P2WPKH)",
            AddressType.TAPROOT: "Taproot (P2TR)",
        }[self]
