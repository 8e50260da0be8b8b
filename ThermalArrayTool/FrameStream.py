import logging
import queue
import socket
import threading
from typing import Optional

import numpy as np

from .CalibrationFields import COLS, PIXEL_COUNT, ROWS
from .Exceptions import ProtocolError, StreamClosedError
from .MatrixObserver import MatrixObserver, publish_latest
from .SessionConfig import DisplayBounds, StreamConfig
from .StreamCodec import read_message, write_message

LOG = logging.getLogger(__name__)


def _close_socket(sock):
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        # Already disconnected
        pass
    sock.close()


class FrameStreamSender(MatrixObserver):
    """
    Sends every published matrix to a connected display node.

    Registered as an observer on the acquisition session, so the
    acquisition worker is the only writer on the socket.  A failed send
    tears the connection down and the sender goes quiet; reconnecting is
    left to whoever created the socket.

    Parameters
    ----------
    sock : socket.socket
        Connected stream socket.
    config : StreamConfig, optional
        Wire byte order.
    """

    def __init__(self, sock, config: Optional[StreamConfig] = None):
        self.sock = sock
        self.config = config or StreamConfig()
        self.connected = True

    def on_matrix(self, matrix, bounds):
        if not self.connected:
            return
        try:
            write_message(self.sock, matrix, self.config.byte_order)
        except OSError as e:
            LOG.error("Frame stream send failed, closing connection: %s", e)
            self.close()

    def close(self):
        if self.connected:
            self.connected = False
            _close_socket(self.sock)


class FrameStreamReceiver(threading.Thread):
    """
    Worker thread that reads matrices from the acquisition node.

    Every complete message is reshaped to ``(24, 32)`` and pushed into
    ``channel`` (oldest dropped when full) and to the observers.  A
    malformed message, a short read or a socket error ends the
    connection and the thread; ``close()`` from another thread unblocks a
    pending read the same way.

    Parameters
    ----------
    sock : socket.socket
        Connected stream socket.
    config : StreamConfig, optional
        Wire byte order.
    channel : queue.Queue, optional
        Destination for received matrices.  A queue of size 2 is created
        when omitted.
    bounds : DisplayBounds, optional
        Presentation limits passed to the observers.
    """

    def __init__(self,
                 sock,
                 config: Optional[StreamConfig] = None,
                 channel: Optional[queue.Queue] = None,
                 bounds: Optional[DisplayBounds] = None):
        super().__init__(name="FrameStreamReceiver", daemon=True)
        self.sock = sock
        self.config = config or StreamConfig()
        self.channel = channel if channel is not None else queue.Queue(maxsize=2)
        self.bounds = bounds or DisplayBounds()
        self.observers = []
        self.error: Optional[Exception] = None
        self._closed = threading.Event()

    def add_observer(self, observer: MatrixObserver):
        self.observers.append(observer)

    def receive(self) -> np.ndarray:
        values = read_message(self.sock, self.config.byte_order)
        if values.size != PIXEL_COUNT:
            raise ProtocolError(
                f"Expected {PIXEL_COUNT} values per frame, got {values.size}")
        return values.reshape(ROWS, COLS)

    def run(self):
        try:
            while not self._closed.is_set():
                matrix = self.receive()
                publish_latest(self.channel, matrix)
                for observer in self.observers:
                    observer.on_matrix(matrix.copy(), self.bounds)
        except StreamClosedError:
            LOG.info("Acquisition node closed the frame stream")
        except (ProtocolError, OSError) as e:
            if not self._closed.is_set():
                self.error = e
                LOG.error("Frame stream terminated: %s", e)
        except Exception as e:
            self.error = e
            LOG.exception("Frame stream receiver stopped")
        finally:
            self.close()

    def close(self):
        if not self._closed.is_set():
            self._closed.set()
            _close_socket(self.sock)
