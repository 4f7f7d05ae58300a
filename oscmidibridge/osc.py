"""Minimal OSC 1.0 message encoding, decoding and UDP transport."""

from __future__ import annotations

import math
import socket
import struct
from dataclasses import dataclass, field
from typing import Any

_BUNDLE_TAG = b"#bundle\0"
_MAX_DATAGRAM = 65535
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class OscError(ValueError):
    """Raised for malformed OSC data or unsupported arguments."""


@dataclass
class OscMessage:
    """An OSC message: an address pattern and a list of arguments."""

    address: str
    args: list[Any] = field(default_factory=list)

    def arg_as_int(self, index: int) -> int:
        """Return argument ``index`` converted to an integer (floats truncate)."""
        value = self.args[index]
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                raise OscError(f"argument {index} cannot be converted to int: {value}")
            return int(value)
        if isinstance(value, str):
            try:
                return int(float(value.strip()))
            except ValueError as exc:
                raise OscError(f"argument {index} is not numeric: {value!r}") from exc
        raise OscError(f"argument {index} cannot be converted to int: {value!r}")

    def arg_as_float(self, index: int) -> float:
        """Return argument ``index`` converted to a float."""
        value = self.args[index]
        if isinstance(value, (bool, int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError as exc:
                raise OscError(f"argument {index} is not numeric: {value!r}") from exc
        raise OscError(f"argument {index} cannot be converted to float: {value!r}")

    def arg_as_string(self, index: int) -> str:
        """Return argument ``index`` as text."""
        value = self.args[index]
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return f"{value:g}"
        if isinstance(value, int):
            return str(value)
        if value is None:
            return ""
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return str(value)


def _pad_string(raw: bytes) -> bytes:
    return raw + b"\0" * (4 - len(raw) % 4)


def _pad_blob(raw: bytes) -> bytes:
    return raw + b"\0" * (-len(raw) % 4)


def _encode_arg(value: Any) -> tuple[str, bytes]:
    if value is None:
        return "N", b""
    if isinstance(value, bool):
        return ("T" if value else "F"), b""
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return "i", struct.pack(">i", value)
        return "h", struct.pack(">q", value)
    if isinstance(value, float):
        return "f", struct.pack(">f", value)
    if isinstance(value, str):
        return "s", _pad_string(value.encode("utf-8"))
    if isinstance(value, (bytes, bytearray)):
        blob = bytes(value)
        return "b", struct.pack(">i", len(blob)) + _pad_blob(blob)
    raise OscError(f"unsupported OSC argument type: {type(value).__name__}")


def encode_message(message: OscMessage) -> bytes:
    """Encode ``message`` as an OSC packet."""
    tags = [","]
    payload = bytearray()
    for arg in message.args:
        tag, data = _encode_arg(arg)
        tags.append(tag)
        payload += data
    return (
        _pad_string(message.address.encode("utf-8"))
        + _pad_string("".join(tags).encode("ascii"))
        + bytes(payload)
    )


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    end = data.find(b"\0", offset)
    if end < 0:
        raise OscError("unterminated OSC string")
    text = data[offset:end].decode("utf-8", errors="replace")
    next_offset = end + 1
    next_offset += -next_offset % 4
    if next_offset > len(data):
        raise OscError("OSC string padding runs past end of packet")
    return text, next_offset


def _read(data: bytes, offset: int, fmt: str) -> tuple[Any, int]:
    size = struct.calcsize(fmt)
    if offset + size > len(data):
        raise OscError("OSC argument runs past end of packet")
    (value,) = struct.unpack_from(fmt, data, offset)
    return value, offset + size


def _decode_message(data: bytes) -> OscMessage:
    address, offset = _read_string(data, 0)
    if offset >= len(data):
        return OscMessage(address)
    tags, offset = _read_string(data, offset)
    if not tags.startswith(","):
        raise OscError("OSC type tag string must start with ','")
    args: list[Any] = []
    for tag in tags[1:]:
        if tag == "i":
            value, offset = _read(data, offset, ">i")
        elif tag == "h":
            value, offset = _read(data, offset, ">q")
        elif tag == "f":
            value, offset = _read(data, offset, ">f")
        elif tag == "d":
            value, offset = _read(data, offset, ">d")
        elif tag in ("s", "S"):
            value, offset = _read_string(data, offset)
        elif tag == "b":
            size, offset = _read(data, offset, ">i")
            if size < 0 or offset + size > len(data):
                raise OscError("OSC blob runs past end of packet")
            value = data[offset : offset + size]
            offset += size + (-size % 4)
        elif tag == "T":
            value = True
        elif tag == "F":
            value = False
        elif tag in ("N", "I"):
            value = None
        else:
            raise OscError(f"unsupported OSC type tag: {tag!r}")
        args.append(value)
    return OscMessage(address, args)


def decode_packet(data: bytes) -> list[OscMessage]:
    """Decode an OSC packet (message or bundle) into a flat list of messages."""
    data = bytes(data)
    if not data:
        raise OscError("empty OSC packet")
    if not data.startswith(_BUNDLE_TAG):
        return [_decode_message(data)]
    offset = len(_BUNDLE_TAG) + 8
    if offset > len(data):
        raise OscError("OSC bundle is missing its time tag")
    messages: list[OscMessage] = []
    while offset < len(data):
        size, offset = _read(data, offset, ">i")
        if size <= 0 or offset + size > len(data):
            raise OscError("OSC bundle element runs past end of packet")
        messages.extend(decode_packet(data[offset : offset + size]))
        offset += size
    return messages


class OscSender:
    """Sends OSC messages over UDP; broadcast destinations are allowed."""

    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)

    def send(self, message: OscMessage) -> None:
        """Encode and send ``message`` to the configured destination."""
        self._sock.sendto(encode_message(message), (self.host, self.port))

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> OscSender:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class OscReceiver:
    """Non-blocking UDP listener for OSC packets."""

    def __init__(self, port: int, host: str = "0.0.0.0") -> None:
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((host, port))
        self._sock.setblocking(False)
        self.host = host
        self.port = self._sock.getsockname()[1]

    def poll(self) -> list[OscMessage]:
        """Return every message waiting on the socket; malformed packets are dropped."""
        messages: list[OscMessage] = []
        while True:
            try:
                data, _ = self._sock.recvfrom(_MAX_DATAGRAM)
            except (BlockingIOError, InterruptedError):
                break
            except ConnectionResetError:
                continue
            try:
                messages.extend(decode_packet(data))
            except OscError:
                continue
        return messages

    def close(self) -> None:
        self._sock.close()

    def __enter__(self) -> OscReceiver:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()