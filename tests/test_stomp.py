from __future__ import annotations

import unittest

from genmon_live.core.exceptions import StompProtocolError
from genmon_live.stomp import (
    Frame,
    connect_frame,
    decode_frame,
    encode_frame,
    negotiate_heartbeat,
    subscribe_frame,
)


class TestEncodeDecode(unittest.TestCase):
    def test_encode_message_frame_layout(self) -> None:
        text = encode_frame(Frame("SEND", {"destination": "/app/x"}, "hello"))
        self.assertEqual(text, "SEND\ndestination:/app/x\n\nhello\x00")

    def test_escapes_header_values_except_for_connect(self) -> None:
        sent = encode_frame(Frame("SEND", {"note": "a:b\nc"}))
        self.assertIn("note:a\\cb\\nc", sent)
        self.assertEqual(decode_frame(sent).headers["note"], "a:b\nc")

        connect = encode_frame(connect_frame("broker", (4000, 4000)))
        self.assertIn("heart-beat:4000,4000", connect)
        self.assertIn("accept-version:1.2,1.1,1.0", connect)

    def test_heartbeat_is_none(self) -> None:
        self.assertIsNone(decode_frame("\n"))
        self.assertIsNone(decode_frame("\r\n"))

    def test_decode_skips_leading_eols(self) -> None:
        frame = decode_frame("\n\nMESSAGE\nsubscription:sub-0\n\n{}\x00")
        self.assertEqual(frame.command, "MESSAGE")
        self.assertEqual(frame.headers["subscription"], "sub-0")
        self.assertEqual(frame.body, "{}")

    def test_decode_honours_content_length(self) -> None:
        frame = decode_frame("MESSAGE\ncontent-length:3\n\na\x00b\x00")
        self.assertEqual(frame.body, "a\x00b")

    def test_first_repeated_header_wins(self) -> None:
        frame = decode_frame("MESSAGE\nfoo:1\nfoo:2\n\n\x00")
        self.assertEqual(frame.headers["foo"], "1")

    def test_missing_nul_raises(self) -> None:
        with self.assertRaises(StompProtocolError):
            decode_frame("MESSAGE\nsubscription:sub-0\n\n{}")

    def test_malformed_header_raises(self) -> None:
        with self.assertRaises(StompProtocolError):
            decode_frame("MESSAGE\nnot-a-header\n\n\x00")

    def test_subscribe_frame(self) -> None:
        frame = decode_frame(encode_frame(subscribe_frame("sub-3", "/topic/device/GEN-1")))
        self.assertEqual(frame.command, "SUBSCRIBE")
        self.assertEqual(frame.headers["id"], "sub-3")
        self.assertEqual(frame.headers["destination"], "/topic/device/GEN-1")


class TestNegotiateHeartbeat(unittest.TestCase):
    def test_takes_max_of_both_sides(self) -> None:
        self.assertEqual(negotiate_heartbeat((4000, 4000), "10000,10000"), (10000, 10000))
        self.assertEqual(negotiate_heartbeat((4000, 4000), "1000,1000"), (4000, 4000))

    def test_zero_disables_direction(self) -> None:
        self.assertEqual(negotiate_heartbeat((4000, 4000), "0,4000"), (4000, 0))
        self.assertEqual(negotiate_heartbeat((0, 4000), "4000,4000"), (0, 4000))

    def test_missing_header_disables_both(self) -> None:
        self.assertEqual(negotiate_heartbeat((4000, 4000), None), (0, 0))

    def test_invalid_header_raises(self) -> None:
        with self.assertRaises(StompProtocolError):
            negotiate_heartbeat((4000, 4000), "soon")
