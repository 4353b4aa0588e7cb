from typing import Optional

from backend import Participant, SessionFullError, SessionRegistry, epoch_ms, normalize_room_id
from message_types import (
    CLOSE_NORMAL,
    CLOSE_POLICY_VIOLATION,
    DEFAULT_ROLE,
    MSG_HELLO,
    MSG_MEMBER_JOINED,
    MSG_MEMBER_LEFT,
    REASON_ROOM_FULL,
    REASON_ROOM_ID_REQUIRED,
)
from relay import PresenceBroadcaster, RelayEngine
from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionHandler:
    """Owns one websocket from admission to cleanup.

    Frames are handed to the relay one at a time in arrival order, and the
    registry cleanup runs exactly once whatever ends the receive loop.
    """

    def __init__(self, registry: SessionRegistry, relay: RelayEngine, presence: PresenceBroadcaster):
        self.registry = registry
        self.relay = relay
        self.presence = presence

    async def serve(self, websocket, room_id: Optional[str], role: Optional[str] = None) -> None:
        room_id = normalize_room_id(room_id)
        role = role or DEFAULT_ROLE
        logger.info(f"WebSocket connection attempt for room: {room_id or '-'}, role: {role}")

        # Accept first so the close reason reaches the client
        await websocket.accept()

        if not room_id:
            logger.info("WebSocket connection rejected: roomId missing")
            await websocket.close(code=CLOSE_POLICY_VIOLATION, reason=REASON_ROOM_ID_REQUIRED)
            return

        try:
            admission = await self.registry.admit(room_id, websocket, role)
        except SessionFullError:
            logger.info(f"WebSocket connection rejected: room {room_id} is full")
            await websocket.close(code=CLOSE_POLICY_VIOLATION, reason=REASON_ROOM_FULL)
            return

        participant = admission.participant
        snapshot = admission.snapshot
        try:
            await participant.send_json({
                "type": MSG_HELLO,
                "roomId": room_id,
                "memberId": participant.participant_id,
                "role": participant.role,
                "createdAt": epoch_ms(snapshot.created_at),
                "members": snapshot.member_ids,
            })
            await self.presence.announce(room_id, {
                "type": MSG_MEMBER_JOINED,
                "roomId": room_id,
                "memberId": participant.participant_id,
                "role": participant.role,
            })
            await self._receive_loop(room_id, participant)
        finally:
            await self._cleanup(room_id, participant)

    async def _receive_loop(self, room_id: str, participant: Participant) -> None:
        websocket = participant.websocket
        message_count = 0
        while True:
            try:
                message = await websocket.receive()
            except Exception as e:
                logger.error(f"[ws.error] {room_id} {participant.participant_id}: {e}", exc_info=True)
                return

            if message.get("type") == "websocket.disconnect":
                logger.info(f"[ws.close] {room_id} {participant.participant_id} code={message.get('code', 1000)}")
                return

            data = message.get("text")
            if data is None and message.get("bytes") is not None:
                try:
                    data = message["bytes"].decode("utf-8")
                except UnicodeDecodeError:
                    # json.loads rejects the raw bytes and answers bad_json
                    data = message["bytes"]
            if data is None:
                continue

            message_count += 1
            logger.debug(f"Received frame #{message_count} from {participant.participant_id} in room {room_id}")
            await self.relay.handle(room_id, participant.participant_id, data)

    async def _cleanup(self, room_id: str, participant: Participant) -> None:
        session = await self.registry.remove(room_id, participant.participant_id)
        if session is not None:
            await self.presence.announce(room_id, {
                "type": MSG_MEMBER_LEFT,
                "roomId": room_id,
                "memberId": participant.participant_id,
            })

        await participant.close(code=CLOSE_NORMAL, reason="")
