"""Canonical transaction record, the single output unit of the pipeline."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

from walletfeed.domain.enums import Network, TxStatus, TxType
from walletfeed.domain.enums.network import native_decimals, native_symbol


class TxEvent(BaseModel):
    """A sub-event attached to a transaction (e.g. the ERC-20 Transfer of a token transfer)."""

    method: str
    section: str
    data: dict[str, Any] = {}


class CanonicalTransaction(BaseModel):
    """Source-independent transaction. Amounts are raw smallest-unit integers kept as strings."""

    id: str
    hash: str = ""  # empty for sourceless events such as staking rewards
    block_number: int = Field(ge=0)
    timestamp: datetime
    from_addr: str = ""
    to_addr: str = ""
    value: str = "0"
    fee: str = "0"
    status: TxStatus = TxStatus.SUCCESS
    network: Network
    type: TxType = TxType.TRANSFER
    method: str = "transfer"
    section: str = "balances"
    events: list[TxEvent] = []
    is_signed: bool = True
    usd_value: Decimal | None = None

    @field_validator("value", "fee", mode="before")
    @classmethod
    def _raw_integer_string(cls, v: Any) -> str:
        if v is None or v == "":
            return "0"
        if isinstance(v, bool):
            raise ValueError("amount must be an integer, not a bool")
        if isinstance(v, int):
            text = str(v)
        else:
            text = str(v).strip()
        if not text.isdigit():
            raise ValueError(f"amount must be a non-negative integer string, got {v!r}")
        return str(int(text))

    @field_validator("timestamp")
    @classmethod
    def _aware_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @property
    def asset_symbol(self) -> str:
        """Token symbol for token transfers, otherwise the network's native asset."""
        token = self._token_data()
        if token and token.get("token_symbol"):
            return str(token["token_symbol"])
        return native_symbol(self.network)

    @property
    def asset_decimals(self) -> int:
        token = self._token_data()
        if token and token.get("token_decimals") is not None:
            return int(token["token_decimals"])
        return native_decimals(self.network)

    @property
    def amount(self) -> Decimal:
        """Value scaled by the asset's decimals."""
        return Decimal(self.value).scaleb(-self.asset_decimals)

    def _token_data(self) -> dict[str, Any] | None:
        if self.type != TxType.TOKEN_TRANSFER or not self.events:
            return None
        return self.events[0].data


def timestamp_from_unix(seconds: int | str | None) -> datetime:
    return datetime.fromtimestamp(int(seconds or 0), tz=UTC)
