### Exceptions ###
# Date : 10/19/2026
# File : Exceptions.py


class ThermalArrayError(Exception):
    """
    Base class for every error raised by ``ThermalArrayTool``.

    Attributes
    ----------
    code : int
        Numeric status code.  Calibration errors reuse the vendor driver
        codes (``-3`` .. ``-7``) so logs stay comparable with firmware
        that reports them.
    """
    code = -1

    def __init__(self, message: str = "", code: int | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


### SESSION-FATAL CALIBRATION ERRORS ###

class CalibrationError(ThermalArrayError, ValueError):
    """The EEPROM dump cannot be turned into a ``CalibrationSet``."""


class InvalidDeviceError(CalibrationError):
    """The device-select bit in the EEPROM dump is not zero."""
    code = -7


class BadPixelError(CalibrationError):
    """
    The EEPROM flags deviating pixels that the compensation cannot tolerate.

    Attributes
    ----------
    broken_pixels : list of int
        Indices of broken pixels found before the scan stopped.
    outlier_pixels : list of int
        Indices of outlier pixels found before the scan stopped.
    """

    def __init__(self, message, broken_pixels=(), outlier_pixels=()):
        super().__init__(message)
        self.broken_pixels = list(broken_pixels)
        self.outlier_pixels = list(outlier_pixels)


class TooManyBrokenPixelsError(BadPixelError):
    code = -3


class TooManyOutlierPixelsError(BadPixelError):
    code = -4


class TooManyDeviatingPixelsError(BadPixelError):
    code = -5


class AdjacentBadPixelsError(BadPixelError):
    code = -6


### CYCLE-FATAL ###

class TransportError(ThermalArrayError, IOError):
    """A register read or write on the sensor bus failed."""
    code = -1


### CONNECTION-FATAL ###

class ProtocolError(ThermalArrayError, IOError):
    """A frame stream message is malformed or was cut short."""
    code = -8


class StreamClosedError(ProtocolError):
    """The peer closed the stream cleanly between two messages."""


class MessageTooLargeError(ThermalArrayError, ValueError):
    """The payload does not fit the 16-bit length prefix."""
    code = -9
