import logging
from enum import Enum
from typing import Optional

import numpy as np

from .CalibrationSet import CalibrationSet
from .Exceptions import TransportError
from .FrameMerger import FrameMerger
from .RawFrame import FRAME_WORDS, RawFrame
from .RegisterTransport import RegisterTransport
from .SessionConfig import SessionConfig
from .TemperatureConverter import calculate_to, get_ta, get_vdd

LOG = logging.getLogger(__name__)

STATUS_REGISTER = 0x8000
CONTROL_REGISTER = 0x800D
RAM_ADDRESS = 0x0400

STATUS_NEW_DATA = 0x0008
STATUS_SUBPAGE = 0x0001
# Clears the new-data flag, enables overwrite and starts a measurement
START_MEASUREMENT = 0x0030
REFRESH_RATE_MASK = 0x0380


class AcquisitionState(Enum):
    IDLE = "idle"
    POLLING_READY = "polling_ready"
    TRIGGERED = "triggered"
    READING = "reading"
    CONVERTED = "converted"


class FrameAcquirer:
    """
    Runs the poll / trigger / read / convert cycle for one sensor.

    The status and control registers are owned here: each ``RawFrame``
    carries the values read right after it, and the converter gets them
    from the frame rather than from shared state.

    A transport failure aborts the running cycle and puts the acquirer
    back into ``IDLE``; nothing is retried here.

    Parameters
    ----------
    transport : RegisterTransport
        Bus access to the sensor.
    calibration : CalibrationSet
        Decoded calibration of the same sensor.
    config : SessionConfig, optional
        Emissivity, reflected temperature and poll limit.
    merger : FrameMerger, optional
        Matrix the converted subpages are merged into.
    """

    def __init__(self,
                 transport: RegisterTransport,
                 calibration: CalibrationSet,
                 config: Optional[SessionConfig] = None,
                 merger: Optional[FrameMerger] = None):
        self.transport = transport
        self.calibration = calibration
        self.config = config or SessionConfig()
        self.merger = merger or FrameMerger()
        self.state = AcquisitionState.IDLE
        self.status = 0
        self.control = 0
        self.ambient_temperature: Optional[float] = None
        self.vdd: Optional[float] = None

    def wait_ready(self) -> int:
        """Busy-poll the status register until the new-data bit is set."""
        self.state = AcquisitionState.POLLING_READY
        polls = 0
        while True:
            status = self.transport.read_word(STATUS_REGISTER)
            if status & STATUS_NEW_DATA:
                return status
            polls += 1
            limit = self.config.ready_poll_limit
            if limit is not None and polls >= limit:
                raise TransportError(
                    f"No new data after {polls} status reads")

    def trigger(self):
        self.state = AcquisitionState.TRIGGERED
        self.transport.write_word(STATUS_REGISTER, START_MEASUREMENT)

    def read_frame(self) -> RawFrame:
        self.state = AcquisitionState.READING
        words = self.transport.read_words(RAM_ADDRESS, FRAME_WORDS)
        self.status = self.transport.read_word(STATUS_REGISTER) & STATUS_SUBPAGE
        self.control = self.transport.read_word(CONTROL_REGISTER)
        return RawFrame(words=words, status=self.status, control=self.control)

    def convert(self, frame: RawFrame) -> np.ndarray:
        """Convert ``frame`` and merge it; returns the merged matrix copy."""
        self.vdd = get_vdd(frame, self.calibration)
        self.ambient_temperature = get_ta(frame, self.calibration, self.vdd)
        if not np.isfinite(self.ambient_temperature):
            LOG.warning("Subpage %d has no valid ambient temperature "
                        "(PTAT %d, Vbe %d); its pixels are not merged",
                        frame.subpage, frame.ptat, frame.vbe)
        reflected = self.config.reflected_temperature
        if reflected is None:
            reflected = self.ambient_temperature - self.config.ta_shift

        values = calculate_to(frame, self.calibration, self.config.emissivity,
                              reflected, vdd=self.vdd, ta=self.ambient_temperature)
        merged = self.merger.merge(values)
        self.state = AcquisitionState.CONVERTED
        return merged

    def acquire_subpage(self) -> np.ndarray:
        """
        Run one full cycle for whichever subpage the sensor delivers next.

        Raises
        ------
        TransportError
            If any bus access fails; the cycle is abandoned.
        """
        try:
            self.wait_ready()
            self.trigger()
            frame = self.read_frame()
        except TransportError:
            self.state = AcquisitionState.IDLE
            LOG.debug("Acquisition cycle aborted by transport failure")
            raise
        LOG.debug("Read subpage %d (control 0x%04X)", frame.subpage, frame.control)
        return self.convert(frame)

    def acquire(self) -> np.ndarray:
        """
        Acquire both subpages and return the merged 768-value matrix.

        Returns
        -------
        np.ndarray
            Copy of the merged matrix, row-major, 32 columns by 24 rows.
        """
        self.acquire_subpage()
        return self.acquire_subpage()


def configure_refresh_rate(transport: RegisterTransport, refresh_rate: int) -> int:
    """
    Read-modify-write the refresh rate bits of the control register.

    Returns
    -------
    int
        The control word that was written.
    """
    control = transport.read_word(CONTROL_REGISTER)
    control = (control & ~REFRESH_RATE_MASK & 0xFFFF) | ((int(refresh_rate) << 7) & REFRESH_RATE_MASK)
    transport.write_word(CONTROL_REGISTER, control)
    LOG.info("Control register set to 0x%04X", control)
    return control
