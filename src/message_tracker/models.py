#!/usr/bin/env python3
"""Data models for the message tracker.

This module provides the immutable records shared by the explorer client,
the polling sessions and their collaborators: explorer targets and logs,
cross-chain messages and delivery status results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict


class MessageStatus(Enum):
    """Delivery state of a cross-chain message."""
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILING = "failing"


class MessageDebugStatus(Enum):
    """Reason a message is failing to deliver, as reported by the debugger."""
    ALREADY_PROCESSED = "alreadyProcessed"
    NO_ERRORS_FOUND = "noErrorsFound"
    RECIPIENT_NOT_CONTRACT = "recipientNotContract"
    RECIPIENT_NOT_HANDLER = "recipientNotHandler"
    ICA_CALL_FAILED = "icaCallFailed"
    HANDLE_CALL_FAILED = "handleCallFailed"
    MULTISIG_ISM_EMPTY = "multisigIsmEmpty"
    GAS_UNDERFUNDED = "gasUnderfunded"


def is_terminal_status(status: MessageStatus | None) -> bool:
    """Return True once polling a message in this status is no longer useful.

    Failing is not terminal: relayers keep retrying and the reason can change.
    """
    return status is MessageStatus.DELIVERED


@dataclass(frozen=True, slots=True)
class ExplorerTarget:
    """Explorer endpoint resolved for one query.

    Attributes:
        chain_id: Chain the explorer serves
        base_url: Explorer API URL, possibly carrying its own query string
        api_key: Key to attach, None for unauthenticated (throttled) queries
    """

    chain_id: int
    base_url: str
    api_key: str | None = None

    def __str__(self) -> str:
        return (
            f"ExplorerTarget(chain={self.chain_id}, url={self.base_url}, "
            f"key={'[SET]' if self.api_key else '[NOT SET]'})"
        )


class ExplorerLogEntry(TypedDict, total=False):
    """Raw log record as returned by an explorer's log query.

    Every numeric-looking field arrives as a decimal or 0x-hex string.
    """
    address: str
    topics: list[str]
    data: str
    blockNumber: str
    timeStamp: str
    gasPrice: str
    gasUsed: str
    logIndex: str
    transactionHash: str
    transactionIndex: str


@dataclass(frozen=True, slots=True)
class NormalizedLog:
    """Explorer log converted to the canonical numeric shape.

    Explorer APIs do not report block hashes or reorg removal for logs, so
    those fields are always empty/False.

    Attributes:
        address: Emitting contract address
        topics: Indexed topics, topic0 first
        data: Hex-encoded non-indexed data
        block_number: Block containing the log
        timestamp: Block time in milliseconds
        log_index: Position of the log in the block (0 when unknown)
        transaction_hash: Hash of the emitting transaction
        transaction_index: Position of the transaction in the block (0 when unknown)
        gas_price: Raw gas price string as reported
        gas_used: Raw gas used string as reported
        block_hash: Always empty for explorer logs
        removed: Always False for explorer logs
    """

    address: str
    topics: tuple[str, ...]
    data: str
    block_number: int
    timestamp: int
    log_index: int
    transaction_hash: str
    transaction_index: int
    gas_price: str = ""
    gas_used: str = ""
    block_hash: str = ""
    removed: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "address": self.address,
            "topics": list(self.topics),
            "data": self.data,
            "blockNumber": self.block_number,
            "blockHash": self.block_hash,
            "timestamp": self.timestamp,
            "logIndex": self.log_index,
            "transactionHash": self.transaction_hash,
            "transactionIndex": self.transaction_index,
            "gasPrice": self.gas_price,
            "gasUsed": self.gas_used,
            "removed": self.removed,
        }


@dataclass(frozen=True, slots=True)
class MessageTx:
    """Origin or destination transaction of a message."""

    hash: str
    block_number: int
    timestamp: int
    from_address: str
    to_address: str = ""


@dataclass(frozen=True, slots=True)
class MessageStub:
    """Listing-level view of a message, as returned by search queries.

    Attributes:
        id: Message id
        status: Current delivery status
        sender: Sender address on the origin chain
        recipient: Recipient address on the destination chain
        origin_chain_id: Chain the message was dispatched from
        destination_chain_id: Chain the message is delivered to
        origin_timestamp: Dispatch time in milliseconds
        destination_timestamp: Delivery time in milliseconds, None until delivered
    """

    id: str
    status: MessageStatus
    sender: str
    recipient: str
    origin_chain_id: int
    destination_chain_id: int
    origin_timestamp: int
    destination_timestamp: int | None

    @property
    def is_delivered(self) -> bool:
        return is_terminal_status(self.status)

    def __str__(self) -> str:
        return (
            f"Message({self.id[:10]}..., {self.status.value}, "
            f"{self.origin_chain_id}->{self.destination_chain_id})"
        )


@dataclass(frozen=True, slots=True)
class Message(MessageStub):
    """Full message record returned by a by-id query."""

    body: str = ""
    nonce: int = 0
    origin_transaction: MessageTx | None = None
    destination_transaction: MessageTx | None = None


@dataclass(frozen=True, slots=True)
class MessageDeliverySuccessResult:
    """Message was processed on the destination chain."""

    delivery_transaction: MessageTx
    status: MessageStatus = field(default=MessageStatus.DELIVERED, init=False)


@dataclass(frozen=True, slots=True)
class MessageDeliveryFailingResult:
    """Message is not delivered and the debugger found a reason."""

    debug_status: MessageDebugStatus
    debug_details: str
    status: MessageStatus = field(default=MessageStatus.FAILING, init=False)


@dataclass(frozen=True, slots=True)
class MessageDeliveryPendingResult:
    """Message is not delivered yet and nothing is known to be wrong."""

    status: MessageStatus = field(default=MessageStatus.PENDING, init=False)


MessageDeliveryStatusResult = (
    MessageDeliverySuccessResult
    | MessageDeliveryFailingResult
    | MessageDeliveryPendingResult
)


def is_terminal_result(result: MessageDeliveryStatusResult) -> bool:
    """Return True for a delivery status result that ends polling."""
    return is_terminal_status(result.status)
