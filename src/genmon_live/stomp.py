"""STOMP 1.2 framing for the push channel.

The broker speaks STOMP over a plain WebSocket: one frame (or one heart-beat
EOL) per text message::

    COMMAND
    header:value

    body^@
"""
from __future__ import annotations

from dataclasses import dataclass, field

from genmon_live.core.exceptions import StompProtocolError

NULL = "\x00"
HEARTBEAT = "\n"

# CONNECT/CONNECTED headers are sent verbatim, everything else is escaped.
_UNESCAPED_COMMANDS = {"CONNECT", "CONNECTED"}

_ESCAPES = (("\\", "\\\\"), ("\r", "\\r"), ("\n", "\\n"), (":", "\\c"))
_UNESCAPES = {"\\": "\\", "r": "\r", "n": "\n", "c": ":"}


@dataclass(frozen=True, slots=True)
class Frame:
    command: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


def _escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def _unescape(value: str) -> str:
    out: list[str] = []
    it = iter(value)
    for ch in it:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(it, None)
        if nxt is None or nxt not in _UNESCAPES:
            raise StompProtocolError(f"Invalid escape sequence in header: {value!r}")
        out.append(_UNESCAPES[nxt])
    return "".join(out)


def encode_frame(frame: Frame) -> str:
    escape = frame.command not in _UNESCAPED_COMMANDS
    lines = [frame.command]
    for key, value in frame.headers.items():
        if escape:
            key, value = _escape(key), _escape(value)
        lines.append(f"{key}:{value}")
    return "\n".join(lines) + "\n\n" + frame.body + NULL


def decode_frame(text: str) -> Frame | None:
    """Decode one STOMP frame. Returns ``None`` for a heart-beat."""
    data = text.lstrip("\r\n")
    if not data:
        return None

    head, sep, rest = data.partition("\n\n")
    if not sep:
        head, sep, rest = data.partition("\r\n\r\n")
    if not sep:
        raise StompProtocolError("Frame has no header terminator")

    lines = head.replace("\r\n", "\n").split("\n")
    command = lines[0].strip()
    if not command:
        raise StompProtocolError("Frame has no command")

    unescape = command not in _UNESCAPED_COMMANDS
    headers: dict[str, str] = {}
    for line in lines[1:]:
        key, colon, value = line.partition(":")
        if not colon:
            raise StompProtocolError(f"Malformed header line: {line!r}")
        if unescape:
            key, value = _unescape(key), _unescape(value)
        # Repeated headers: the first occurrence wins.
        headers.setdefault(key, value)

    if "content-length" in headers:
        try:
            length = int(headers["content-length"])
        except ValueError as exc:
            raise StompProtocolError("Invalid content-length header") from exc
        encoded = rest.encode("utf-8")
        if len(encoded) < length + 1 or encoded[length : length + 1] != b"\x00":
            raise StompProtocolError("Frame body shorter than content-length")
        body = encoded[:length].decode("utf-8")
    else:
        body, nul, _ = rest.partition(NULL)
        if not nul:
            raise StompProtocolError("Frame is not NUL-terminated")

    return Frame(command=command, headers=headers, body=body)


def connect_frame(host: str, heartbeat: tuple[int, int]) -> Frame:
    return Frame(
        "CONNECT",
        {
            "accept-version": "1.2,1.1,1.0",
            "host": host,
            "heart-beat": f"{heartbeat[0]},{heartbeat[1]}",
        },
    )


def subscribe_frame(subscription_id: str, destination: str) -> Frame:
    return Frame("SUBSCRIBE", {"id": subscription_id, "destination": destination, "ack": "auto"})


def unsubscribe_frame(subscription_id: str) -> Frame:
    return Frame("UNSUBSCRIBE", {"id": subscription_id})


def disconnect_frame() -> Frame:
    return Frame("DISCONNECT")


def negotiate_heartbeat(client: tuple[int, int], server_header: str | None) -> tuple[int, int]:
    """Return ``(send_ms, receive_ms)`` agreed from both heart-beat headers.

    0 on either side disables that direction.
    """
    cx, cy = client
    sx, sy = 0, 0
    if server_header:
        try:
            raw_sx, raw_sy = server_header.split(",")
            sx, sy = int(raw_sx), int(raw_sy)
        except ValueError as exc:
            raise StompProtocolError(f"Invalid heart-beat header: {server_header!r}") from exc

    send_ms = 0 if cx == 0 or sy == 0 else max(cx, sy)
    receive_ms = 0 if sx == 0 or cy == 0 else max(sx, cy)
    return send_ms, receive_ms
