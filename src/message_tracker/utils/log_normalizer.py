"""
Conversion of raw explorer log records into NormalizedLog.

Explorers report numbers as decimal or 0x-hex strings. Block number and
timestamp are required; log and transaction index are optional because some
providers omit them for certain log kinds.
"""

import logging
from typing import Any

from eth_utils import is_0x_prefixed

from ..errors import MalformedLogError
from ..models import ExplorerLogEntry, NormalizedLog

logger = logging.getLogger(__name__)


def to_decimal_number(value: Any) -> int:
    """
    Parse an explorer number into an int.

    Args:
        value: int, decimal string or 0x-prefixed hex string

    Returns:
        Parsed integer

    Raises:
        ValueError: If the value is empty or not a number
    """
    match value:
        case bool():
            raise ValueError(f"Not a number: {value!r}")
        case int():
            return value
        case str() if is_0x_prefixed(value):
            return int(value, 16)
        case str() if value.strip():
            return int(value.strip(), 10)
        case _:
            raise ValueError(f"Not a number: {value!r}")


def try_to_decimal_number(value: Any) -> int | None:
    """Like to_decimal_number but returns None instead of raising."""
    try:
        return to_decimal_number(value)
    except ValueError:
        return None


def to_normalized_log(entry: ExplorerLogEntry) -> NormalizedLog:
    """
    Convert a validated explorer log entry into a NormalizedLog.

    Args:
        entry: Raw log record from an explorer

    Returns:
        Log with integer block number, indices and a millisecond timestamp

    Raises:
        MalformedLogError: If blockNumber or timeStamp cannot be parsed
    """
    try:
        block_number = to_decimal_number(entry.get("blockNumber"))
        timestamp = to_decimal_number(entry.get("timeStamp")) * 1000
    except ValueError as e:
        raise MalformedLogError(
            f"Log {entry.get('transactionHash')} has an unusable number: {e}"
        ) from e

    log_index = try_to_decimal_number(entry.get("logIndex"))
    if log_index is None:
        logger.debug(f"Log {entry.get('transactionHash')} has no usable logIndex, using 0")

    return NormalizedLog(
        address=entry.get("address", ""),
        topics=tuple(entry.get("topics") or ()),
        data=entry.get("data", ""),
        block_number=block_number,
        timestamp=timestamp,
        log_index=log_index or 0,
        transaction_hash=entry.get("transactionHash", ""),
        transaction_index=try_to_decimal_number(entry.get("transactionIndex")) or 0,
        gas_price=entry.get("gasPrice", ""),
        gas_used=entry.get("gasUsed", ""),
    )
