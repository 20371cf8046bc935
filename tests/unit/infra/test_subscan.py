"""Tests for SubscanClient and SubscanAdapter with mocked HTTP."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from walletfeed.domain.enums import DedupKey, Network, SyncStage, TxStatus, TxType
from walletfeed.exceptions import ExternalServiceError
from walletfeed.infra.sources.subscan.adapter import SubscanAdapter, record_id
from walletfeed.infra.sources.subscan.client import SubscanClient

ADDRESS = "13UVJyLnbVp9RBZYFwFGyDvVd1y27Tt8tkntv6Q7JVPhFsTB"


def _mock_response(data: dict, status_code: int = 200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = data
    resp.text = str(data)
    return resp


def _transfer(block: int, index: int, amount: str = "15000000000", **extra) -> dict:
    return {
        "block_num": block,
        "extrinsic_index": f"{block}-{index}",
        "block_timestamp": 1700000000,
        "hash": f"0xhash{block}{index}",
        "from": ADDRESS,
        "to": "15abc",
        "amount": "1.5",
        "amount_v2": amount,
        "fee": "156000000",
        "success": True,
        **extra,
    }


def _extrinsic(block: int, index: int, module: str, function: str) -> dict:
    return {
        "block_num": block,
        "extrinsic_index": f"{block}-{index}",
        "block_timestamp": 1700000000,
        "extrinsic_hash": f"0xext{block}{index}",
        "account_id": ADDRESS,
        "call_module": module,
        "call_module_function": function,
        "fee": "100",
        "success": True,
    }


@pytest.fixture()
def mock_http():
    return AsyncMock()


@pytest.fixture()
def client(mock_http):
    return SubscanClient("polkadot", mock_http, api_key="secret")


class TestSubscanClient:
    async def test_transfers_request_shape(self, client, mock_http):
        mock_http.post.return_value = _mock_response({"code": 0, "data": {"transfers": [_transfer(1, 0)], "count": 7}})

        transfers, count = await client.get_transfers(ADDRESS, row=500, page=2)

        assert count == 7
        assert len(transfers) == 1
        args, kwargs = mock_http.post.call_args
        assert args[0] == "https://polkadot.api.subscan.io/api/v2/scan/transfers"
        assert kwargs["json"] == {"address": ADDRESS, "row": 100, "page": 2}
        assert kwargs["headers"]["X-API-Key"] == "secret"

    async def test_no_api_key_header_when_unset(self, mock_http):
        client = SubscanClient("kusama", mock_http)
        mock_http.post.return_value = _mock_response({"code": 0, "data": {"list": []}})

        await client.get_extrinsics(ADDRESS)

        assert "X-API-Key" not in mock_http.post.call_args[1]["headers"]

    async def test_rewards_request_is_stash(self, client, mock_http):
        mock_http.post.return_value = _mock_response({"code": 0, "data": {"list": []}})

        await client.get_rewards(ADDRESS, row=100)

        body = mock_http.post.call_args[1]["json"]
        assert body["is_stash"] is True
        assert body["row"] == 50

    async def test_nonzero_code_raises(self, client, mock_http):
        mock_http.post.return_value = _mock_response({"code": 10004, "message": "Record Not Found"})

        with pytest.raises(ExternalServiceError, match="10004"):
            await client.get_transfers(ADDRESS)

    async def test_http_error_raises(self, client, mock_http):
        mock_http.post.return_value = _mock_response({}, status_code=500)

        with pytest.raises(ExternalServiceError):
            await client.get_extrinsics(ADDRESS)

    def test_unknown_network_rejected(self, mock_http):
        with pytest.raises(ValueError):
            SubscanClient("ethereum", mock_http)


class TestRecordId:
    def test_strips_block_prefix(self):
        assert record_id(123, "123-4") == "123-4"

    def test_suffix(self):
        assert record_id(123, "123-4", suffix="reward") == "123-4-reward"

    def test_missing_index(self):
        assert record_id(9, None) == "9-0"


class TestSubscanAdapter:
    @pytest.fixture()
    def subscan(self):
        return AsyncMock(spec=SubscanClient)

    @pytest.fixture()
    def adapter(self, subscan):
        return SubscanAdapter({Network.POLKADOT: subscan, Network.MOONBEAM: subscan})

    async def test_transfers_mapped(self, adapter, subscan):
        subscan.get_transfers.return_value = ([_transfer(100, 2)], 1)
        subscan.get_extrinsics.return_value = []
        subscan.get_rewards.return_value = []

        batch = await adapter.fetch(Network.POLKADOT, ADDRESS)

        tx = batch.primary[0]
        assert tx.id == "100-2"
        assert tx.value == "15000000000"
        assert tx.fee == "156000000"
        assert tx.status == TxStatus.SUCCESS
        assert tx.network == Network.POLKADOT
        assert batch.dedup_key == DedupKey.ID

    async def test_extrinsic_join_backfills_method(self, adapter, subscan):
        subscan.get_transfers.return_value = ([_transfer(100, 2)], 1)
        subscan.get_extrinsics.return_value = [
            _extrinsic(100, 2, "balances", "transfer_keep_alive"),
            _extrinsic(90, 1, "staking", "bond"),
        ]
        subscan.get_rewards.return_value = []

        batch = await adapter.fetch(Network.POLKADOT, ADDRESS)

        assert batch.primary[0].method == "transfer_keep_alive"
        non_transfer = batch.supplementary[0]
        assert [tx.id for tx in non_transfer] == ["90-1"]
        assert non_transfer[0].type == TxType.STAKING

    async def test_extrinsics_failure_degrades(self, adapter, subscan):
        subscan.get_transfers.return_value = ([_transfer(100, 2)], 1)
        subscan.get_extrinsics.side_effect = ExternalServiceError("boom")
        subscan.get_rewards.return_value = []

        batch = await adapter.fetch(Network.POLKADOT, ADDRESS)

        assert len(batch.primary) == 1
        assert batch.supplementary[0] == []

    async def test_rewards_mapped(self, adapter, subscan):
        subscan.get_transfers.return_value = ([], 0)
        subscan.get_extrinsics.return_value = []
        subscan.get_rewards.return_value = [
            {"block_num": 80, "event_index": "80-5", "block_timestamp": 1700000000, "amount": "42000000"}
        ]

        batch = await adapter.fetch(Network.POLKADOT, ADDRESS)

        reward = batch.supplementary[1][0]
        assert reward.id == "80-5-reward"
        assert reward.hash == ""
        assert reward.from_addr == "Staking Rewards"
        assert reward.to_addr == ADDRESS
        assert reward.method == "Rewarded"
        assert reward.type == TxType.STAKING
        assert reward.is_signed is False

    async def test_rewards_failure_degrades(self, adapter, subscan):
        subscan.get_transfers.return_value = ([_transfer(100, 2)], 1)
        subscan.get_extrinsics.return_value = []
        subscan.get_rewards.side_effect = ExternalServiceError("boom")

        batch = await adapter.fetch(Network.POLKADOT, ADDRESS)

        assert batch.total == 1

    async def test_no_rewards_call_on_parachain(self, adapter, subscan):
        subscan.get_transfers.return_value = ([], 0)
        subscan.get_extrinsics.return_value = []

        await adapter.fetch(Network.MOONBEAM, ADDRESS)

        subscan.get_rewards.assert_not_called()

    async def test_transfer_failure_propagates(self, adapter, subscan):
        subscan.get_transfers.side_effect = ExternalServiceError("down")

        with pytest.raises(ExternalServiceError):
            await adapter.fetch(Network.POLKADOT, ADDRESS)

    async def test_progress_reported(self, adapter, subscan):
        subscan.get_transfers.return_value = ([_transfer(100, 2)], 1)
        subscan.get_extrinsics.return_value = []
        subscan.get_rewards.return_value = []
        events = []

        await adapter.fetch(Network.POLKADOT, ADDRESS, on_progress=events.append)

        assert len(events) == 3
        assert all(e.stage == SyncStage.FETCHING for e in events)
        assert events[0].transactions_found == 1
        assert events[-1].message == "Fetched 0 staking rewards"
        assert events[-1].transactions_found == 1

    def test_supports(self, adapter):
        assert adapter.supports(Network.POLKADOT)
        assert not adapter.supports(Network.ETHEREUM)
