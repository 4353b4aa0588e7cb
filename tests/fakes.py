import asyncio
import json

from fastapi.websockets import WebSocketState


class FakeClock:
    """Manually advanced clock, seconds since epoch."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeWebSocket:
    """In-memory stand-in for a Starlette WebSocket.

    Frames the server sends land in `sent` and in an awaitable outbox;
    frames from the "client" are queued with feed_text/feed_json.
    """

    def __init__(self, fail_sends=False):
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.fail_sends = fail_sends
        self.sent = []
        self.closed_with = None
        self._inbox = asyncio.Queue()
        self._outbox = asyncio.Queue()

    async def accept(self):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, data):
        if self.application_state != WebSocketState.CONNECTED:
            raise RuntimeError("Cannot send on a closed websocket")
        if self.fail_sends:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)
        await self._outbox.put(data)

    async def close(self, code=1000, reason=None):
        self.application_state = WebSocketState.DISCONNECTED
        self.closed_with = (code, reason)
        await self._inbox.put({"type": "websocket.disconnect", "code": code})

    async def receive(self):
        message = await self._inbox.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    # client side helpers

    def feed_text(self, text):
        self._inbox.put_nowait({"type": "websocket.receive", "text": text})

    def feed_bytes(self, data):
        self._inbox.put_nowait({"type": "websocket.receive", "bytes": data})

    def feed_json(self, obj):
        self.feed_text(json.dumps(obj))

    def disconnect(self, code=1000):
        self._inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    async def next_message(self, timeout=1.0):
        return await asyncio.wait_for(self._outbox.get(), timeout)

    def types_sent(self):
        return [m.get("type") for m in self.sent]


async def connected_socket(**kwargs):
    ws = FakeWebSocket(**kwargs)
    await ws.accept()
    return ws
