import logging
from abc import ABC, abstractmethod
from typing import Sequence

from smbus2 import SMBus, i2c_msg

from .Exceptions import TransportError

LOG = logging.getLogger(__name__)


class RegisterTransport(ABC):
    """
    Word-oriented access to a register-addressed sensor.

    Implementations talk to the hardware (or a simulation of it).  The core
    only ever calls these three methods; discovering and opening the bus is
    left to whoever constructs the transport.

    Methods
    -------
    read_words(address, count)
        Read ``count`` consecutive 16-bit words starting at ``address``.
    write_word(address, value)
        Write a single 16-bit word.
    close()
        Release the bus.  Any blocked call should fail afterwards.
    """

    @abstractmethod
    def read_words(self, address: int, count: int) -> Sequence[int]:
        """
        Parameters
        ----------
        address : int
            16-bit register address of the first word.
        count : int
            Number of words to read.

        Returns
        -------
        sequence of int
            ``count`` unsigned 16-bit words.

        Raises
        ------
        TransportError
            If the bus transaction fails.
        """

    @abstractmethod
    def write_word(self, address: int, value: int) -> None:
        """Write ``value`` to the register at ``address``."""

    def close(self) -> None:
        pass

    def read_word(self, address: int) -> int:
        return self.read_words(address, 1)[0]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()


def words_from_bytes(data: bytes) -> list:
    """Pair big-endian bytes into unsigned 16-bit words."""
    return [(data[i] << 8) | data[i + 1] for i in range(0, len(data) - 1, 2)]


class SMBusTransport(RegisterTransport):
    """
    ``RegisterTransport`` over a Linux I2C adapter using ``smbus2``.

    Reads are issued as a single combined write-then-read transaction so
    the bus is not released between the address and the data phase.

    Parameters
    ----------
    bus : int
        I2C adapter number (``1`` on a Raspberry Pi header).
    address : int, optional
        7-bit device address.  Default is ``0x33``.
    """

    def __init__(self, bus: int = 1, address: int = 0x33):
        self.address = address
        try:
            self._bus = SMBus(bus)
        except OSError as e:
            raise TransportError(f"Cannot open I2C bus {bus}") from e

    def _require_bus(self) -> SMBus:
        if self._bus is None:
            raise TransportError("I2C bus is closed")
        return self._bus

    def read_words(self, address, count):
        bus = self._require_bus()
        write = i2c_msg.write(self.address, [address >> 8, address & 0xFF])
        read = i2c_msg.read(self.address, count * 2)
        try:
            bus.i2c_rdwr(write, read)
        except OSError as e:
            raise TransportError(
                f"Read of {count} words at 0x{address:04X} failed") from e
        return words_from_bytes(bytes(read))

    def write_word(self, address, value):
        bus = self._require_bus()
        payload = [address >> 8, address & 0xFF, (value >> 8) & 0xFF, value & 0xFF]
        try:
            bus.i2c_rdwr(i2c_msg.write(self.address, payload))
        except OSError as e:
            raise TransportError(
                f"Write of 0x{value:04X} to 0x{address:04X} failed") from e

    def close(self):
        if self._bus is not None:
            LOG.debug("Closing I2C bus for device 0x%02X", self.address)
            self._bus.close()
            self._bus = None
