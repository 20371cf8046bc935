"""mempool.space payloads and their normalized forms."""

from pydantic import BaseModel


class MempoolPrevout(BaseModel):
    scriptpubkey_type: str = ""
    scriptpubkey_address: str | None = None
    value: int = 0


class MempoolInput(BaseModel):
    txid: str = ""
    vout: int = 0
    prevout: MempoolPrevout | None = None
    is_coinbase: bool = False


class MempoolOutput(BaseModel):
    scriptpubkey_type: str = ""
    scriptpubkey_address: str | None = None
    value: int = 0


class MempoolTxStatus(BaseModel):
    confirmed: bool = False
    block_height: int | None = None
    block_hash: str | None = None
    block_time: int | None = None


class MempoolTransaction(BaseModel):
    txid: str
    vin: list[MempoolInput] = []
    vout: list[MempoolOutput] = []
    fee: int = 0
    status: MempoolTxStatus = MempoolTxStatus()

    def normalize(self, current_height: int | None = None) -> "BitcoinTransaction":
        inputs = [
            BitcoinTxInput(
                address=i.prevout.scriptpubkey_address if i.prevout else None,
                value=i.prevout.value if i.prevout else 0,
                prev_txid=i.txid,
                prev_vout=i.vout,
            )
            for i in self.vin
        ]
        outputs = [
            BitcoinTxOutput(address=o.scriptpubkey_address, value=o.value, index=n, script_type=o.scriptpubkey_type)
            for n, o in enumerate(self.vout)
        ]
        confirmations = 0
        height = self.status.block_height
        if height is not None and current_height is not None and current_height >= height:
            confirmations = current_height - height + 1
        return BitcoinTransaction(
            txid=self.txid,
            block_height=height,
            timestamp=self.status.block_time,
            confirmed=self.status.confirmed,
            inputs=inputs,
            outputs=outputs,
            fee=self.fee,
            confirmations=confirmations,
            is_coinbase=bool(self.vin) and self.vin[0].is_coinbase,
        )


class BitcoinTxInput(BaseModel):
    address: str | None = None
    value: int = 0
    prev_txid: str = ""
    prev_vout: int = 0


class BitcoinTxOutput(BaseModel):
    address: str | None = None
    value: int = 0
    index: int = 0
    script_type: str = ""


class BitcoinTransaction(BaseModel):
    txid: str
    block_height: int | None = None
    timestamp: int | None = None
    confirmed: bool = False
    inputs: list[BitcoinTxInput] = []
    outputs: list[BitcoinTxOutput] = []
    fee: int = 0
    confirmations: int = 0
    is_coinbase: bool = False


class BitcoinUtxo(BaseModel):
    txid: str
    vout: int
    value: int
    status: MempoolTxStatus = MempoolTxStatus()


class MempoolAddressStats(BaseModel):
    funded_txo_count: int = 0
    funded_txo_sum: int = 0
    spent_txo_count: int = 0
    spent_txo_sum: int = 0
    tx_count: int = 0


class MempoolAddressInfo(BaseModel):
    address: str
    chain_stats: MempoolAddressStats = MempoolAddressStats()
    mempool_stats: MempoolAddressStats = MempoolAddressStats()


class BitcoinBalance(BaseModel):
    """Balances in satoshis."""

    address: str
    balance: int
    confirmed_balance: int
    unconfirmed_balance: int
    utxo_count: int
    total_received: int
    total_sent: int
    tx_count: int

    @property
    def has_activity(self) -> bool:
        return self.tx_count > 0 or self.balance > 0

    @classmethod
    def from_address_info(cls, info: MempoolAddressInfo, utxo_count: int) -> "BitcoinBalance":
        chain, pool = info.chain_stats, info.mempool_stats
        confirmed = chain.funded_txo_sum - chain.spent_txo_sum
        # Mempool can spend confirmed outputs, so the pending delta may go negative
        unconfirmed = max(pool.funded_txo_sum - pool.spent_txo_sum, 0)
        return cls(
            address=info.address,
            balance=confirmed + unconfirmed,
            confirmed_balance=confirmed,
            unconfirmed_balance=unconfirmed,
            utxo_count=utxo_count,
            total_received=chain.funded_txo_sum + pool.funded_txo_sum,
            total_sent=chain.spent_txo_sum + pool.spent_txo_sum,
            tx_count=chain.tx_count + pool.tx_count,
        )
