### ThermalSession Class ###
# Date : 10/19/2026
# File : ThermalSession.py

import logging
import queue
import threading
from typing import List, Optional

import numpy as np

from .CalibrationFields import COLS, ROWS
from .CalibrationSet import CalibrationSet
from .CalibrationSetFactory import CalibrationSetFactory
from .Exceptions import TransportError
from .FrameAcquirer import FrameAcquirer, configure_refresh_rate
from .FrameMerger import FrameMerger, center_average
from .MatrixObserver import MatrixObserver, publish_latest
from .RegisterTransport import RegisterTransport
from .SessionConfig import DisplayBounds, SessionConfig

LOG = logging.getLogger(__name__)


class ThermalSession(object):
    """
    One acquisition session on one sensor.

    ``open()`` runs the bootstrap sequence: the refresh rate is written to
    the control register, the EEPROM is dumped and decoded.  ``start()``
    then launches a worker thread that acquires both subpages in a loop
    and publishes every merged matrix (shape ``(24, 32)``, degC) to
    ``channel`` and to the subscribed observers.

    A transport failure aborts only the running cycle; the worker logs it
    and starts the next one.  Calibration errors raised by ``open()`` are
    fatal and leave the session unopened.

    Parameters
    ----------
    transport : RegisterTransport
        Ready bus access to the sensor.  The session closes it on
        ``close()``.
    config : SessionConfig, optional
        Session parameters.

    Attributes
    ----------
    calibration : CalibrationSet or None
        Set once ``open()`` succeeds.
    channel : queue.Queue
        Latest merged matrices, oldest dropped when full.
    bounds : DisplayBounds
        Current presentation limits.

    Examples
    --------
    >>> session = ThermalSession(SMBusTransport(bus=1))
    >>> session.open()
    >>> session.start()
    >>> matrix = session.channel.get()
    >>> session.close()
    """

    def __init__(self, transport: RegisterTransport, config: Optional[SessionConfig] = None):
        self.transport = transport
        self.config = config or SessionConfig()
        self.bounds = self.config.bounds
        self.channel = queue.Queue(maxsize=self.config.channel_size)
        self.merger = FrameMerger()
        self.calibration: Optional[CalibrationSet] = None
        self.acquirer: Optional[FrameAcquirer] = None
        self.error: Optional[Exception] = None
        self.failed_cycles = 0

        self._observers: List[MatrixObserver] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def open(self) -> CalibrationSet:
        """
        Configure the sensor and decode its calibration.

        Raises
        ------
        TransportError
            If the control register or EEPROM cannot be accessed.
        CalibrationError
            If the EEPROM dump is rejected.
        """
        configure_refresh_rate(self.transport, self.config.refresh_rate)
        self.calibration = CalibrationSetFactory.create(self.transport)
        self.acquirer = FrameAcquirer(self.transport, self.calibration,
                                      self.config, self.merger)
        LOG.info("Session opened at %s", self.config.refresh_rate.name)
        return self.calibration

    def subscribe(self, observer: MatrixObserver):
        with self._lock:
            self._observers.append(observer)

    def unsubscribe(self, observer: MatrixObserver):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def set_lower_bound(self, lower: float) -> DisplayBounds:
        """Move the lower bound; a value at or above the upper bound is ignored."""
        with self._lock:
            if lower >= self.bounds.upper:
                LOG.info("Ignoring lower bound %.1f (upper is %.1f)", lower, self.bounds.upper)
            else:
                self.bounds = self.bounds.with_lower(lower)
            return self.bounds

    def set_upper_bound(self, upper: float) -> DisplayBounds:
        """Move the upper bound; a value at or below the lower bound is ignored."""
        with self._lock:
            if upper <= self.bounds.lower:
                LOG.info("Ignoring upper bound %.1f (lower is %.1f)", upper, self.bounds.lower)
            else:
                self.bounds = self.bounds.with_upper(upper)
            return self.bounds

    def center_temperature(self) -> float:
        return center_average(self.merger.snapshot())

    def publish(self, merged: np.ndarray):
        matrix = np.asarray(merged, dtype=np.float64).reshape(ROWS, COLS)
        publish_latest(self.channel, matrix.copy())
        with self._lock:
            observers = list(self._observers)
            bounds = self.bounds
        for observer in observers:
            observer.on_matrix(matrix.copy(), bounds)

    def run_cycle(self) -> Optional[np.ndarray]:
        """
        Acquire and publish one merged matrix.

        Returns ``None`` when the cycle was aborted by a transport failure.
        Only the first of a run of consecutive failures is logged as an
        error; the rest go to debug until a cycle succeeds again.
        """
        if self.acquirer is None:
            raise RuntimeError("Session is not open")
        try:
            merged = self.acquirer.acquire()
        except TransportError as e:
            self.failed_cycles += 1
            if self.failed_cycles == 1 and not self._stop.is_set():
                LOG.error("Acquisition cycle failed: %s", e)
            else:
                LOG.debug("Acquisition cycle failed (%d in a row): %s",
                          self.failed_cycles, e)
            return None
        if self.failed_cycles:
            LOG.info("Acquisition recovered after %d failed cycles", self.failed_cycles)
            self.failed_cycles = 0
        self.publish(merged)
        return merged

    def _worker(self):
        try:
            while not self._stop.is_set():
                self.run_cycle()
        except Exception as e:
            self.error = e
            LOG.exception("Acquisition worker stopped")

    def start(self):
        if self.acquirer is None:
            self.open()
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._worker,
                                        name="ThermalSession", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None):
        """Signal the worker to finish its current cycle and wait for it."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def close(self):
        """Stop the worker and release the transport."""
        self._stop.set()
        self.transport.close()
        self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()


if __name__ == '__main__':
    import argparse
    from .RegisterTransport import SMBusTransport

    parser = argparse.ArgumentParser(description="Print the centre temperature of an MLX90640")
    parser.add_argument("--bus", type=int, default=1)
    parser.add_argument("--frames", type=int, default=10)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    with ThermalSession(SMBusTransport(bus=args.bus)) as session:
        session.open()
        session.start()
        for _ in range(args.frames):
            matrix = session.channel.get()
            print(f"Centre: {center_average(matrix):.2f} C  "
                  f"min {matrix.min():.2f}  max {matrix.max():.2f}")
