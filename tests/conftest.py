import numpy as np
import pytest

from ThermalArrayTool.CalibrationFields import EEPROM_ADDRESS, EEPROM_WORDS
from ThermalArrayTool.Exceptions import TransportError
from ThermalArrayTool.FrameAcquirer import (CONTROL_REGISTER, RAM_ADDRESS,
                                            START_MEASUREMENT, STATUS_NEW_DATA,
                                            STATUS_REGISTER)
from ThermalArrayTool.RawFrame import FRAME_WORDS
from ThermalArrayTool.RegisterTransport import RegisterTransport

# Known results for the canned EEPROM and frame below
EXPECTED_VDD = 3.3
EXPECTED_TA = 211 / 42.25 + 25  # 29.994...
EXPECTED_CENTER = 40.03
CENTER_PIXEL = 12 * 32 + 16


def eeprom_words(pixel_word=0x0400):
    """
    Canned 832-word EEPROM dump of a chess-calibrated device.

    Every pixel has offset -99, alpha 2000 / 2**34 and no Kta/Kv, which
    with the canned frame puts the whole array at about 40 degC.
    """
    words = np.zeros(EEPROM_WORDS, dtype=np.int64)
    words[16] = 0x4000  # alphaPTAT 9
    words[17] = 0xFF9C  # offset reference -100
    words[32] = 0x4000  # alpha scale 34
    words[33] = 2000
    words[48] = 6000  # gain
    words[49] = 16173  # vPTAT25
    words[50] = 0x0152  # KtPTAT 42.25
    words[51] = 0x9D68  # kVdd -3168, vdd25 -13056
    words[53] = 0x1961  # ilChessC -1.9375, 2.5, 0.375
    words[56] = 0x2000  # resolution 2
    words[57] = (4 << 10) | 0x100
    words[58] = (2 << 10) | 0x3F6  # cp offsets -10, -8
    words[63] = 0x1469  # ct 60 / 100, ksTo scale 2**17
    words[64:] = pixel_word
    return words


def rich_eeprom_words(calibration_mode=0x0000):
    """
    EEPROM dump with every drift and range term switched on.

    KvPTAT 3/2**12, Kv averages 1,3,2,4 / 2**4, Kta averages 10,30,20,40
    plus a per-pixel remainder of 4 (all / 2**11), KsTa 2**-9, tgc 0.25,
    cpKta 4/2**11, cpKv 2/2**4 and KsTo -100, -90, -80, -70 / 2**17.
    """
    words = eeprom_words(pixel_word=0x0404)
    words[10] = calibration_mode
    words[50] = (3 << 10) | 0x152
    words[52] = 0x1234
    words[54] = 0x0A14
    words[55] = 0x1E28
    words[56] = 0x2431  # resolution 2, Kv scale 4, Kta scales 3 and 1
    words[59] = 0x0204
    words[60] = 0x1008
    words[61] = 0xA69C
    words[62] = 0xBAB0
    return words


def rich_frame_words():
    """Frame with a pixel ramp from about -45 to 145 degC and Vdd above 3.3 V."""
    words = frame_words()
    words[:768] = (np.arange(768) * 3 - 600) & 0xFFFF
    words[810] = 0x10000 - 13373  # Vdd 3.3 + 317 / 3168
    return words


def frame_words():
    words = np.zeros(FRAME_WORDS, dtype=np.int64)
    words[:768] = 26
    words[768] = 7168  # Vbe
    words[776] = 0xFFF0  # cp subpage 0
    words[778] = 6000  # gain
    words[800] = 1024  # PTAT
    words[808] = 0xFFF0  # cp subpage 1
    words[810] = 0xCD00  # Vdd
    return words


class FakeTransport(RegisterTransport):
    """
    In-memory sensor.

    The new-data bit comes up ``ready_after`` status reads after each
    trigger, and the measured subpage alternates every time it does.
    Reads at any address listed in ``fail_addresses`` raise
    ``TransportError``.
    """

    def __init__(self, eeprom=None, frame=None, control=0x1901, ready_after=2):
        self.eeprom = eeprom_words() if eeprom is None else np.asarray(eeprom)
        self.frame = frame_words() if frame is None else np.asarray(frame)
        self.control = control
        self.ready_after = ready_after
        self.subpage = 0
        self.ready = True
        self.polls = 0
        self.status_reads = 0
        self.writes = []
        self.fail_addresses = set()
        self.closed = False

    def _status(self):
        self.status_reads += 1
        if not self.ready:
            self.polls += 1
            if self.ready_after is not None and self.polls >= self.ready_after:
                self.ready = True
                self.subpage ^= 1
        return self.subpage | (STATUS_NEW_DATA if self.ready else 0)

    def read_words(self, address, count):
        if self.closed:
            raise TransportError("closed")
        if address in self.fail_addresses:
            raise TransportError(f"injected failure at 0x{address:04X}")
        if address == EEPROM_ADDRESS:
            return [int(w) for w in self.eeprom[:count]]
        if address == RAM_ADDRESS:
            return [int(w) for w in self.frame[:count]]
        if address == STATUS_REGISTER:
            return [self._status()]
        if address == CONTROL_REGISTER:
            return [self.control]
        raise TransportError(f"unmapped address 0x{address:04X}")

    def write_word(self, address, value):
        if self.closed:
            raise TransportError("closed")
        self.writes.append((address, value))
        if address == CONTROL_REGISTER:
            self.control = value
        elif address == STATUS_REGISTER and value == START_MEASUREMENT:
            self.ready = False
            self.polls = 0

    def close(self):
        self.closed = True


@pytest.fixture
def eeprom():
    return eeprom_words()


@pytest.fixture
def calibration(eeprom):
    from ThermalArrayTool.CalibrationDecoder import CalibrationDecoder
    return CalibrationDecoder(eeprom).decode()


@pytest.fixture
def raw_frame():
    from ThermalArrayTool.RawFrame import RawFrame
    return RawFrame(words=frame_words(), status=0, control=0x1901)


@pytest.fixture
def transport():
    return FakeTransport()
