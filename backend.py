import asyncio
import secrets
import string
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from fastapi.websockets import WebSocketState

from constants import MAX_MEMBERS, MEMBER_ID_LENGTH, ROOM_ID_LENGTH
from message_types import DEFAULT_ROLE
from logging_config import get_logger

logger = get_logger(__name__)


SLUG_ALPHABET = string.ascii_letters + string.digits


def generate_random_slug(length: int) -> str:
    return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(length))


def generate_room_id() -> str:
    return generate_random_slug(ROOM_ID_LENGTH).upper()


def normalize_room_id(room_id: Optional[str]) -> str:
    return (room_id or "").strip().upper()


def epoch_ms(ts: float) -> int:
    return int(ts * 1000)


class RegistryError(Exception):
    """Base class for admission failures raised by the registry."""


class SessionFullError(RegistryError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is full")
        self.session_id = session_id


@dataclass(eq=False)
class Participant:
    """One admitted connection.

    All writes to the websocket go through `send_json`, which holds the
    participant's own lock so frames from the relay, presence and keepalive
    paths never interleave on one socket.
    """

    participant_id: str
    websocket: object
    role: str = DEFAULT_ROLE
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        return (
            getattr(self.websocket, "client_state", None) == WebSocketState.CONNECTED
            and getattr(self.websocket, "application_state", None) == WebSocketState.CONNECTED
        )

    async def send_json(self, message: dict) -> bool:
        """Best-effort send. Returns False when the frame could not be written."""
        if not self.is_open:
            return False
        try:
            async with self._send_lock:
                await self.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Dropped {message.get('type')} frame to {self.participant_id}: {e}")
            return False

    async def close(self, code: int, reason: str) -> None:
        if not self.is_open:
            return
        try:
            async with self._send_lock:
                await self.websocket.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Error closing connection {self.participant_id}: {e}")


@dataclass(eq=False)
class Session:
    session_id: str
    created_at: float
    members: Dict[str, Participant] = field(default_factory=dict)

    @property
    def member_ids(self) -> List[str]:
        return list(self.members.keys())

    def is_expired(self, ttl: float, now: float) -> bool:
        return now - self.created_at > ttl


@dataclass(frozen=True)
class SessionSnapshot:
    session_id: str
    created_at: float
    member_ids: List[str]


@dataclass(frozen=True)
class Admission:
    participant: Participant
    session: Session
    snapshot: SessionSnapshot


class SessionRegistry:
    """In-memory map of session id -> Session.

    Every read and mutation happens under one asyncio lock; callers get
    copies back and never touch `Session.members` directly.
    """

    def __init__(self, clock: Callable[[], float] = time.time, max_members: int = MAX_MEMBERS):
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.max_members = max_members
        logger.info(f"Initializing SessionRegistry (max_members={max_members})")

    def now(self) -> float:
        return self._clock()

    def _ensure_locked(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(session_id=session_id, created_at=self._clock())
            self._sessions[session_id] = session
            logger.info(f"[room.created] {session_id}")
        return session

    async def ensure(self, session_id: str) -> Session:
        async with self._lock:
            return self._ensure_locked(session_id)

    async def admit(self, session_id: str, websocket, role: str = DEFAULT_ROLE) -> Admission:
        async with self._lock:
            session = self._ensure_locked(session_id)
            if len(session.members) >= self.max_members:
                logger.info(f"[room.full] {session_id}")
                raise SessionFullError(session_id)

            participant_id = generate_random_slug(MEMBER_ID_LENGTH)
            while participant_id in session.members:
                participant_id = generate_random_slug(MEMBER_ID_LENGTH)

            participant = Participant(
                participant_id=participant_id,
                websocket=websocket,
                role=role or DEFAULT_ROLE,
            )
            session.members[participant_id] = participant
            logger.info(f"[join] {session_id} {participant_id} {participant.role}")
            snapshot = SessionSnapshot(session_id, session.created_at, session.member_ids)
            return Admission(participant=participant, session=session, snapshot=snapshot)

    async def remove(self, session_id: str, participant_id: str) -> Optional[Session]:
        """Remove a participant, dropping the session once it is empty.

        Returns the session the participant was removed from, or None when it
        was not a member of the live session under that id.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or participant_id not in session.members:
                logger.debug(f"Participant {participant_id} not in live session {session_id}, nothing to remove")
                return None
            del session.members[participant_id]
            logger.info(f"[leave] {session_id} {participant_id}")
            if not session.members:
                del self._sessions[session_id]
                logger.info(f"[room.gc] {session_id}")
            return session

    async def snapshot(self, session_id: str) -> Optional[SessionSnapshot]:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return SessionSnapshot(session_id, session.created_at, session.member_ids)

    async def count(self) -> int:
        async with self._lock:
            return len(self._sessions)

    async def participants(self, session_id: str) -> List[Participant]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return list(session.members.values()) if session else []

    async def get_participant(self, session_id: str, participant_id: str) -> Optional[Participant]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return session.members.get(participant_id) if session else None

    async def all_participants(self) -> List[Participant]:
        async with self._lock:
            return [p for session in self._sessions.values() for p in session.members.values()]

    async def evict_expired(self, ttl: float, now: Optional[float] = None) -> List[Session]:
        """Remove and return every session older than `ttl` seconds."""
        now = self._clock() if now is None else now
        async with self._lock:
            expired = [s for s in self._sessions.values() if s.is_expired(ttl, now)]
            for session in expired:
                del self._sessions[session.session_id]
            return expired
