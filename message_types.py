# Inbound kinds forwarded verbatim to the other member
RELAYED_TYPES = ("offer", "answer", "ice")

MSG_PING = "ping"
MSG_PONG = "pong"
MSG_HELLO = "hello"
MSG_ERROR = "error"
MSG_MEMBER_JOINED = "member.joined"
MSG_MEMBER_LEFT = "member.left"

ERROR_BAD_JSON = "bad_json"
ERROR_UNSUPPORTED_TYPE = "unsupported_type"

# WebSocket close codes / reasons
CLOSE_NORMAL = 1000
CLOSE_POLICY_VIOLATION = 1008

REASON_ROOM_ID_REQUIRED = "roomId required"
REASON_ROOM_FULL = "room full"
REASON_EXPIRED = "expired"

DEFAULT_ROLE = "guest"

# **Example `hello` frame**
# - `type` = "hello"
# - `roomId` = upper-cased session id
# - `memberId` = id assigned to this connection
# - `role` = "caller" / "callee" / "guest"
# - `createdAt` = session creation, epoch milliseconds
# - `members` = member ids in join order, including this one
