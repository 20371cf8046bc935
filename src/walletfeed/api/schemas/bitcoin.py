from pydantic import BaseModel

from walletfeed.infra.sources.utxo.models import BitcoinBalance
from walletfeed.infra.sources.utxo.xpub import DerivedAddress


class AddressBalance(BaseModel):
    address: DerivedAddress
    balance: BitcoinBalance


class XpubBalancesResponse(BaseModel):
    xpub: str
    addresses: list[AddressBalance]
    total_balance: int
