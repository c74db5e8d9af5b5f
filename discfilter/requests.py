"""Inbound TALK and FINDVALUE requests awaiting an answer from the application."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ResponseError(Exception):
    """A response could not be handed to the handler."""


@dataclass(frozen=True)
class NodeAddress:
    """The socket a request came from and the node id that sent it."""

    socket_addr: Tuple[Any, int]
    node_id: bytes

    def __str__(self) -> str:
        return f"Node: {self.node_id.hex()}, addr: {self.socket_addr}"


class ResponseKind(enum.Enum):
    """The kind of body carried by a response."""

    TALK = "talk"
    VALUE = "value"


@dataclass(frozen=True)
class Response:
    """A response to the request with id ``id``."""

    id: bytes
    kind: ResponseKind
    payload: bytes


#: A message for the handler: the address to answer and the response to send.
Outbound = Tuple[NodeAddress, Any]
Sender = Callable[[Outbound], None]


def _send(sender: Sender, message: Outbound) -> None:
    try:
        sender(message)
    except ConnectionError as exc:
        raise ResponseError("channel closed") from exc


@dataclass
class TalkRequest:
    """A TALK request from a peer.

    If it is closed without :meth:`respond` being called, an empty TALK response is sent.
    Use it as a context manager, or call :meth:`close`, to guarantee the peer gets an answer.
    """

    id: bytes
    node_address: NodeAddress
    protocol: bytes
    body: bytes
    sender: Optional[Sender] = field(default=None, repr=False)

    @property
    def node_id(self) -> bytes:
        return self.node_address.node_id

    def _take_sender(self) -> Sender:
        if self.sender is None:
            raise ResponseError("request already answered")
        sender, self.sender = self.sender, None
        return sender

    def respond(self, response: bytes) -> None:
        """Send ``response`` as the answer to this request."""
        sender = self._take_sender()
        logger.debug("Sending TALK response to %s", self.node_address)
        message = (self.node_address, Response(self.id, ResponseKind.TALK, bytes(response)))
        _send(sender, message)

    def close(self) -> None:
        """Answer with an empty body unless already answered."""
        if self.sender is None:
            return
        sender = self._take_sender()
        logger.debug("Sending empty TALK response to %s", self.node_address)
        try:
            _send(sender, (self.node_address, Response(self.id, ResponseKind.TALK, b"")))
        except ResponseError as exc:
            logger.warning("Failed to send empty talk response %s", exc)

    def __enter__(self) -> "TalkRequest":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:  # never raise during finalisation
            pass


@dataclass
class FindValueRequest:
    """A FINDVALUE request from a peer.

    ``nodes_responses`` are the prepared NODES messages sent when no value is known.
    """

    id: bytes
    node_address: NodeAddress
    key: bytes
    nodes_responses: List[Outbound] = field(default_factory=list)
    sender: Optional[Sender] = field(default=None, repr=False)

    @property
    def node_id(self) -> bytes:
        return self.node_address.node_id

    def respond(self, response: Optional[bytes]) -> None:
        """Send the value, or the prepared NODES responses when ``response`` is ``None``."""
        if self.sender is None:
            raise ResponseError("request already answered")
        sender, self.sender = self.sender, None
        if response is not None:
            message = (self.node_address, Response(self.id, ResponseKind.VALUE, bytes(response)))
            _send(sender, message)
            return
        for message in self.nodes_responses:
            _send(sender, message)