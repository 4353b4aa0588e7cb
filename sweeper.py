import asyncio
from typing import List

from backend import SessionRegistry, epoch_ms
from constants import KEEPALIVE_INTERVAL_SECONDS, SESSION_TTL_SECONDS, SWEEP_INTERVAL_SECONDS
from message_types import CLOSE_NORMAL, MSG_PING, REASON_EXPIRED
from logging_config import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Run `tick()` every `interval` seconds until cancelled."""

    name = "periodic"

    def __init__(self, interval: float):
        self.interval = interval
        self._task = None

    async def tick(self):
        raise NotImplementedError

    async def run(self):
        logger.info(f"Starting {self.name} task (every {self.interval}s)")
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.tick()
                except Exception as e:
                    logger.error(f"Error in {self.name} tick: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info(f"{self.name} task cancelled")
            raise

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class ExpirySweeper(PeriodicTask):
    """Evict sessions older than the TTL and close their connections."""

    name = "expiry sweeper"

    def __init__(self, registry: SessionRegistry, ttl: float = SESSION_TTL_SECONDS,
                 interval: float = SWEEP_INTERVAL_SECONDS):
        super().__init__(interval)
        self.registry = registry
        self.ttl = ttl

    async def tick(self):
        return await self.sweep()

    async def sweep(self) -> List[str]:
        # Sessions leave the registry before any socket is closed, so the
        # members' own cleanup finds nothing to remove.
        expired = await self.registry.evict_expired(self.ttl)
        for session in expired:
            logger.info(f"[room.expire] {session.session_id} ({len(session.members)} member(s))")
            for participant in list(session.members.values()):
                await participant.close(code=CLOSE_NORMAL, reason=REASON_EXPIRED)
        return [session.session_id for session in expired]


class KeepalivePinger(PeriodicTask):
    """Server-originated ping to every open connection."""

    name = "keepalive"

    def __init__(self, registry: SessionRegistry, interval: float = KEEPALIVE_INTERVAL_SECONDS):
        super().__init__(interval)
        self.registry = registry

    async def tick(self):
        return await self.ping_all()

    async def ping_all(self) -> int:
        message = {"type": MSG_PING, "t": epoch_ms(self.registry.now())}
        sent = 0
        for participant in await self.registry.all_participants():
            if await participant.send_json(message):
                sent += 1
        logger.debug(f"Keepalive ping sent to {sent} connection(s)")
        return sent
