# ThermalArrayTool/__init__.py

from .RegisterTransport import RegisterTransport, SMBusTransport
from .CalibrationSet import CalibrationSet
from .CalibrationDecoder import CalibrationDecoder
from .CalibrationSetFactory import CalibrationSetFactory
from .RawFrame import RawFrame
from .TemperatureConverter import calculate_to, get_ta, get_vdd
from .FrameMerger import FrameMerger, center_average
from .FrameAcquirer import FrameAcquirer, AcquisitionState
from .StreamCodec import encode, decode, read_message, write_message
from .MatrixObserver import MatrixObserver
from .FrameStream import FrameStreamSender, FrameStreamReceiver
from .ThermalSession import ThermalSession
from .SessionConfig import SessionConfig, DisplayBounds, StreamConfig, RefreshRate
from .Exceptions import (ThermalArrayError, CalibrationError, InvalidDeviceError,
                         BadPixelError, TooManyBrokenPixelsError,
                         TooManyOutlierPixelsError, TooManyDeviatingPixelsError,
                         AdjacentBadPixelsError, TransportError, ProtocolError,
                         StreamClosedError, MessageTooLargeError)

__all__ = [
    "RegisterTransport", "SMBusTransport", "CalibrationSet", "CalibrationDecoder",
    "CalibrationSetFactory", "RawFrame", "calculate_to", "get_ta", "get_vdd",
    "FrameMerger", "center_average", "FrameAcquirer", "AcquisitionState",
    "encode", "decode", "read_message", "write_message", "MatrixObserver",
    "FrameStreamSender", "FrameStreamReceiver", "ThermalSession",
    "SessionConfig", "DisplayBounds", "StreamConfig", "RefreshRate",
    "ThermalArrayError", "CalibrationError", "InvalidDeviceError",
    "BadPixelError", "TooManyBrokenPixelsError", "TooManyOutlierPixelsError",
    "TooManyDeviatingPixelsError", "AdjacentBadPixelsError", "TransportError",
    "ProtocolError", "StreamClosedError", "MessageTooLargeError"
]
