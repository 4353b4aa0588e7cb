import json
from typing import Union

from backend import SessionRegistry, epoch_ms
from message_types import (
    ERROR_BAD_JSON,
    ERROR_UNSUPPORTED_TYPE,
    MSG_ERROR,
    MSG_PING,
    MSG_PONG,
    RELAYED_TYPES,
)
from logging_config import get_logger

logger = get_logger(__name__)


class PresenceBroadcaster:
    """Fan a presence event out to every open connection of a session."""

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def announce(self, session_id: str, event: dict) -> int:
        members = await self.registry.participants(session_id)
        delivered = 0
        for participant in members:
            if await participant.send_json(event):
                delivered += 1
        logger.debug(f"Announced {event.get('type')} in room {session_id} to {delivered}/{len(members)} members")
        return delivered


class RelayEngine:
    """Route one inbound frame: forward to the peer, answer the sender, or reject.

    Payloads are opaque. Only the `type` field is looked at.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    async def handle(self, session_id: str, sender_id: str, raw: Union[str, bytes]) -> None:
        sender = await self.registry.get_participant(session_id, sender_id)
        if sender is None:
            logger.debug(f"Frame from {sender_id} ignored, not a member of room {session_id}")
            return

        try:
            message = json.loads(raw)
        except (ValueError, TypeError):
            logger.debug(f"Undecodable frame from {sender_id} in room {session_id}")
            await sender.send_json({"type": MSG_ERROR, "code": ERROR_BAD_JSON})
            return

        if not isinstance(message, dict):
            return
        message_type = message.get("type")
        if not message_type:
            return

        if isinstance(message_type, str) and message_type in RELAYED_TYPES:
            logger.info(f"[signal] {session_id} {message_type} from {sender_id}")
            envelope = {"type": message_type, "roomId": session_id, "from": sender_id}
            if "payload" in message:
                envelope["payload"] = message["payload"]
            await self.relay_to_peer(session_id, sender_id, envelope)
        elif message_type == MSG_PING:
            await sender.send_json({"type": MSG_PONG, "t": epoch_ms(self.registry.now())})
        else:
            logger.debug(f"Unsupported frame type {message_type!r} from {sender_id} in room {session_id}")
            await sender.send_json({"type": MSG_ERROR, "code": ERROR_UNSUPPORTED_TYPE})

    async def relay_to_peer(self, session_id: str, sender_id: str, envelope: dict) -> int:
        delivered = 0
        for participant in await self.registry.participants(session_id):
            if participant.participant_id == sender_id:
                continue
            if await participant.send_json(envelope):
                delivered += 1
        if not delivered:
            logger.debug(f"No open peer for {envelope['type']} from {sender_id} in room {session_id}")
        return delivered
