"""
Payload validators for explorer query results.

A successful envelope does not mean a usable payload: providers return
empty-but-truthy records or unrelated objects. Each validator raises a typed
error before any field of the result is trusted.
"""

import json
import logging
from typing import Any

from ..errors import (
    MalformedBlockError,
    MalformedLogError,
    MalformedReceiptError,
    MalformedTxError,
)
from ..models import ExplorerLogEntry
from .log_normalizer import try_to_decimal_number

logger = logging.getLogger(__name__)


def _dump(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


def validate_explorer_log(log: Any) -> ExplorerLogEntry:
    """
    Check a single log entry carries the fields needed to decode it.

    Raises:
        MalformedLogError: If the entry is not a mapping or lacks
            transactionHash, topics, data or timeStamp
    """
    if not log or not isinstance(log, dict):
        raise MalformedLogError("Log is nullish")
    if not log.get("transactionHash"):
        raise MalformedLogError("Log has no tx hash")
    topics = log.get("topics")
    if not topics or not isinstance(topics, list):
        raise MalformedLogError("Log has no topics")
    if not log.get("data"):
        raise MalformedLogError("Log has no data to parse")
    if not log.get("timeStamp"):
        raise MalformedLogError("Log has no timestamp")
    return log  # type: ignore[return-value]


def validate_explorer_logs(logs: Any, params: Any = None) -> list[ExplorerLogEntry]:
    """
    Validate a log query result.

    Args:
        logs: Result unwrapped from the envelope
        params: Query parameters, only used for the error log line

    Returns:
        The same list, now known to hold well-formed entries

    Raises:
        MalformedLogError: If the result is not a list or any entry is malformed
    """
    if not isinstance(logs, list):
        msg = "Invalid tx logs result"
        logger.error(f"{msg}: {_dump(logs)} {params}")
        raise MalformedLogError(msg, _dump(logs))
    for log in logs:
        validate_explorer_log(log)
    return logs


def validate_tx(tx: Any, tx_hash: str) -> dict[str, Any]:
    """
    Check a transaction result is the transaction that was asked for.

    Raises:
        MalformedTxError: If the result is empty or its hash differs
    """
    found = tx.get("hash") if isinstance(tx, dict) else None
    if not isinstance(found, str) or found.lower() != tx_hash.lower():
        msg = "Invalid tx result"
        logger.error(f"{msg}: {_dump(tx)} txhash={tx_hash}")
        raise MalformedTxError(msg, _dump(tx))
    return tx


def validate_tx_receipt(receipt: Any, tx_hash: str) -> dict[str, Any]:
    """
    Check a receipt result belongs to the requested transaction.

    Raises:
        MalformedReceiptError: If the result is empty or its hash differs
    """
    found = receipt.get("transactionHash") if isinstance(receipt, dict) else None
    if not isinstance(found, str) or found.lower() != tx_hash.lower():
        msg = "Invalid tx receipt result"
        logger.error(f"{msg}: {_dump(receipt)} txhash={tx_hash}")
        raise MalformedReceiptError(msg, _dump(receipt))
    return receipt


def validate_block(block: Any, tag: str = "latest") -> dict[str, Any]:
    """
    Check a block result has a positive block number.

    Raises:
        MalformedBlockError: If the number is missing, unparseable or not positive
    """
    number = try_to_decimal_number(block.get("number")) if isinstance(block, dict) else None
    if number is None or number <= 0:
        msg = "Invalid block result"
        logger.error(f"{msg}: {_dump(block)} tag={tag}")
        raise MalformedBlockError(msg, _dump(block))
    return block
