import struct

import numpy as np

from .Exceptions import MessageTooLargeError, ProtocolError, StreamClosedError

LENGTH_BYTES = 2
VALUE_BYTES = 8
MAX_PAYLOAD = 0xFFFF
MAX_VALUES = MAX_PAYLOAD // VALUE_BYTES  # 8191


def _length_format(byte_order: str) -> str:
    return byte_order + "H"


def _value_dtype(byte_order: str) -> np.dtype:
    return np.dtype(byte_order + "f8")


def encode(matrix, byte_order: str = "<") -> bytes:
    """
    Serialize a sequence of doubles into one length-prefixed message.

    Parameters
    ----------
    matrix : array-like
        Values to send; flattened in row-major order.
    byte_order : {'<', '>'}, optional
        Byte order of both the length field and the values.

    Returns
    -------
    bytes
        ``[u16 payload length][payload]``.

    Raises
    ------
    MessageTooLargeError
        If the payload would exceed 65535 bytes (more than 8191 values).
    """
    values = np.asarray(matrix, dtype=np.float64).ravel()
    if values.size > MAX_VALUES:
        raise MessageTooLargeError(
            f"{values.size} values do not fit a 16-bit length prefix "
            f"(max {MAX_VALUES})")
    payload = values.astype(_value_dtype(byte_order)).tobytes()
    return struct.pack(_length_format(byte_order), len(payload)) + payload


def decode_payload(payload: bytes, byte_order: str = "<") -> np.ndarray:
    if len(payload) % VALUE_BYTES:
        raise ProtocolError(
            f"Payload of {len(payload)} bytes is not a whole number of doubles")
    return np.frombuffer(payload, dtype=_value_dtype(byte_order)).astype(np.float64)


def decode(message: bytes, byte_order: str = "<") -> np.ndarray:
    """
    Decode one complete message produced by ``encode``.

    Raises
    ------
    ProtocolError
        If the message is shorter or longer than its length prefix says.
    """
    if len(message) < LENGTH_BYTES:
        raise ProtocolError("Message is shorter than its length prefix")
    (length,) = struct.unpack(_length_format(byte_order), message[:LENGTH_BYTES])
    payload = message[LENGTH_BYTES:]
    if len(payload) != length:
        raise ProtocolError(
            f"Length prefix announces {length} bytes, message carries {len(payload)}")
    return decode_payload(payload, byte_order)


def recv_exactly(sock, count: int) -> bytes:
    """
    Block until exactly ``count`` bytes have been read from ``sock``.

    Raises
    ------
    StreamClosedError
        If the peer closed before the first byte arrived.
    ProtocolError
        If the peer closed part way through.
    """
    buffer = bytearray()
    while len(buffer) < count:
        chunk = sock.recv(count - len(buffer))
        if not chunk:
            if not buffer:
                raise StreamClosedError("Peer closed the stream")
            raise ProtocolError(
                f"Stream closed after {len(buffer)} of {count} bytes")
        buffer.extend(chunk)
    return bytes(buffer)


def read_message(sock, byte_order: str = "<") -> np.ndarray:
    """Read one message from a connected socket and decode it."""
    header = recv_exactly(sock, LENGTH_BYTES)
    (length,) = struct.unpack(_length_format(byte_order), header)
    try:
        payload = recv_exactly(sock, length)
    except StreamClosedError as e:
        raise ProtocolError(
            f"Stream closed after the length prefix ({length} bytes expected)") from e
    return decode_payload(payload, byte_order)


def write_message(sock, matrix, byte_order: str = "<"):
    """Encode ``matrix`` and hand it to ``sock`` as a single write."""
    sock.sendall(encode(matrix, byte_order))
