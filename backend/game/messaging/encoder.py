"""
MessagePack codec for WebSocket frames.

Every frame carries exactly one dict. Decoding is bounded so that a hostile
client cannot make the server allocate large buffers; the limits are sized
for chess traffic (a FEN is under 100 bytes).
"""

from typing import Any

import msgpack


class DecodeError(Exception):
    """Raised when a frame is not a valid, bounded MessagePack dict."""


MAX_BUFFER_LEN = 16 * 1024
MAX_STR_LEN = 4 * 1024
MAX_BIN_LEN = 1024
MAX_ARRAY_LEN = 512
MAX_MAP_LEN = 64
MAX_EXT_LEN = 0


def encode(data: dict[str, Any]) -> bytes:
    """
    Encode an outbound message dict to MessagePack bytes.
    """
    return msgpack.packb(data, use_bin_type=True)


def decode(data: bytes) -> dict[str, Any]:
    """
    Decode one inbound frame.

    Raises DecodeError if the frame is oversized, malformed, or not a dict.
    """
    if len(data) > MAX_BUFFER_LEN:
        raise DecodeError(f"payload too large: {len(data)} bytes (max {MAX_BUFFER_LEN})")
    try:
        result = msgpack.unpackb(
            data,
            raw=False,
            strict_map_key=True,
            max_str_len=MAX_STR_LEN,
            max_bin_len=MAX_BIN_LEN,
            max_array_len=MAX_ARRAY_LEN,
            max_map_len=MAX_MAP_LEN,
            max_ext_len=MAX_EXT_LEN,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise DecodeError(f"failed to decode MessagePack data: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected dict, got {type(result).__name__}")

    return result
