"""Transaction classifier: ordered rule chain, first match wins.

Providers report different subsets of semantic metadata. Rules run from the
most explicit signal (display names, call modules) down to timing heuristics,
and the order is part of the contract: reordering changes outcomes.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict

from walletfeed.domain.enums import TxType

logger = logging.getLogger(__name__)

# call module → transaction type
MODULE_TYPES: dict[str, TxType] = {
    "balances": TxType.TRANSFER,
    "staking": TxType.STAKING,
    "xcmPallet": TxType.XCM,
    "polkadotXcm": TxType.XCM,
    "xTokens": TxType.XCM,
    "democracy": TxType.GOVERNANCE,
    "council": TxType.GOVERNANCE,
    "treasury": TxType.GOVERNANCE,
    "phragmenElection": TxType.GOVERNANCE,
    "convictionVoting": TxType.GOVERNANCE,
    "crowdloan": TxType.OTHER,
    "identity": TxType.OTHER,
    "utility": TxType.TRANSFER,
}

# Era changes (and so most payouts) land in these UTC hours
ERA_CHANGE_HOURS = range(0, 3)

SYSTEM_ACCOUNTS = {"", "system"}


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str
    section: str
    type: TxType


ClassifierFn = Callable[[dict[str, Any]], Classification | None]


@dataclass(frozen=True)
class ClassifierRule:
    """A named rule: returns a Classification when it matches, None otherwise."""

    name: str
    apply: ClassifierFn


class Classifier:
    """Runs rules in order; the last rule must always match."""

    def __init__(self, rules: Sequence[ClassifierRule]) -> None:
        if not rules:
            raise ValueError("Classifier needs at least one rule")
        self._rules = list(rules)

    @property
    def rules(self) -> list[ClassifierRule]:
        return list(self._rules)

    def classify(self, raw: dict[str, Any]) -> Classification:
        for rule in self._rules:
            result = rule.apply(raw)
            if result is not None:
                logger.debug("Rule %s matched: %s.%s", rule.name, result.section, result.method)
                return result
        raise ValueError("No classifier rule matched; the rule chain has no default")


def classify_module(module: str) -> TxType:
    return MODULE_TYPES.get(module, TxType.OTHER)


def _from_module(module: str | None, function: str | None) -> Classification | None:
    if not module or not function:
        return None
    return Classification(method=function, section=module, type=classify_module(module))


def _display(account: Any) -> str:
    if not isinstance(account, dict):
        return ""
    people = account.get("people") or {}
    return account.get("display") or people.get("display") or ""


def _raw_amount(raw: dict[str, Any]) -> Decimal:
    try:
        return Decimal(str(raw.get("amount_v2") or raw.get("amount") or "0"))
    except InvalidOperation:
        return Decimal(0)


def _is_system(account: Any) -> bool:
    return account is None or account in SYSTEM_ACCOUNTS


# --- Substrate (indexer) rules -------------------------------------------------


def match_display_names(raw: dict[str, Any]) -> Classification | None:
    """Parse human-readable account labels such as "Pool#20(Reward)" or "Treasury"."""
    from_display = _display(raw.get("from_account_display"))
    to_display = _display(raw.get("to_account_display"))
    if not from_display and not to_display:
        return None

    text = f"{from_display} {to_display}".lower()

    if "reward" in text:
        return Classification(method="Reward", section="staking", type=TxType.STAKING)

    if "pool#" in text or "nomination" in text:
        if "join" in text or "pool#" in to_display.lower():
            return Classification(method="join", section="nominationPools", type=TxType.STAKING)
        if "unbond" in text or "withdraw" in text:
            return Classification(method="unbond", section="nominationPools", type=TxType.STAKING)
        return Classification(method="pool_transaction", section="nominationPools", type=TxType.STAKING)

    if "treasury" in text:
        return Classification(method="treasury_transfer", section="treasury", type=TxType.GOVERNANCE)

    if "validator" in text or "stash" in text:
        # "unbond" contains "bond", so it is checked first
        if "unbond" in text:
            return Classification(method="unbond", section="staking", type=TxType.STAKING)
        if "bond" in text:
            return Classification(method="bond", section="staking", type=TxType.STAKING)
        return Classification(method="staking_operation", section="staking", type=TxType.STAKING)

    if "council" in text or "governance" in text:
        return Classification(method="governance_action", section="governance", type=TxType.GOVERNANCE)

    if "crowdloan" in text:
        return Classification(method="contribute", section="crowdloan", type=TxType.OTHER)

    return None


def match_call_module(raw: dict[str, Any]) -> Classification | None:
    return _from_module(raw.get("call_module"), raw.get("call_module_function"))


def match_extrinsic_call(raw: dict[str, Any]) -> Classification | None:
    extrinsic = raw.get("extrinsic") or {}
    return _from_module(extrinsic.get("call_module"), extrinsic.get("call_module_function"))


def match_event(raw: dict[str, Any]) -> Classification | None:
    event = raw.get("event") or {}
    result = _from_module(event.get("module_id"), event.get("event_id"))
    if result is not None:
        return result
    if raw.get("event_id"):
        return _from_module(raw.get("module") or "balances", raw["event_id"])
    return None


def match_system_heuristics(raw: dict[str, Any]) -> Classification | None:
    """Last-resort inference from empty/system counterparties and block time."""
    if _raw_amount(raw) <= 0:
        return None

    if _is_system(raw.get("from")):
        block_time = datetime.fromtimestamp(int(raw.get("block_timestamp") or 0), tz=UTC)
        if block_time.hour in ERA_CHANGE_HOURS:
            return Classification(method="Reward", section="staking", type=TxType.STAKING)
        return Classification(method="Deposit", section="balances", type=TxType.TRANSFER)

    if _is_system(raw.get("to")):
        return Classification(method="Withdraw", section="balances", type=TxType.TRANSFER)

    return None


def default_transfer(raw: dict[str, Any]) -> Classification:
    return Classification(method="transfer", section=raw.get("module") or "balances", type=TxType.TRANSFER)


SUBSTRATE_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(name="display_names", apply=match_display_names),
    ClassifierRule(name="call_module", apply=match_call_module),
    ClassifierRule(name="extrinsic_call", apply=match_extrinsic_call),
    ClassifierRule(name="event", apply=match_event),
    ClassifierRule(name="system_heuristics", apply=match_system_heuristics),
    ClassifierRule(name="default", apply=default_transfer),
)


# --- EVM (explorer / RPC) rules -----------------------------------------------


def match_token_transfer(raw: dict[str, Any]) -> Classification | None:
    symbol = raw.get("tokenSymbol")
    if not symbol:
        return None
    return Classification(method=f"transfer_{symbol}", section="erc20", type=TxType.TOKEN_TRANSFER)


def match_contract_call(raw: dict[str, Any]) -> Classification | None:
    data = raw.get("input") or "0x"
    if data == "0x":
        return None
    function_name = (raw.get("functionName") or "").split("(")[0]
    return Classification(method=function_name or "contract_call", section="evm", type=TxType.CONTRACT)


def default_evm_transfer(raw: dict[str, Any]) -> Classification:
    return Classification(method="transfer", section="balances", type=TxType.TRANSFER)


EVM_RULES: tuple[ClassifierRule, ...] = (
    ClassifierRule(name="token_transfer", apply=match_token_transfer),
    ClassifierRule(name="contract_call", apply=match_contract_call),
    ClassifierRule(name="default", apply=default_evm_transfer),
)

substrate_classifier = Classifier(SUBSTRATE_RULES)
evm_classifier = Classifier(EVM_RULES)


def classify(raw: dict[str, Any]) -> Classification:
    """Classify a raw indexer record."""
    return substrate_classifier.classify(raw)


def classify_evm(raw: dict[str, Any]) -> Classification:
    """Classify a raw explorer or RPC transaction."""
    return evm_classifier.classify(raw)
