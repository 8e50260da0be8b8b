
from pydantic import BaseModel, ConfigDict, Field, field_validator
import numpy as np

from .CalibrationFields import PIXEL_COUNT

FRAME_WORDS = 832

# Housekeeping word offsets inside a frame
VBE_WORD = 768
CP_SUBPAGE_0_WORD = 776
GAIN_WORD = 778
PTAT_WORD = 800
CP_SUBPAGE_1_WORD = 808
VDD_WORD = 810


class RawFrame(BaseModel):
    """
    One subpage read from the sensor RAM, with the register state that
    describes it.

    Attributes
    ----------
    words : np.ndarray
        ``uint16`` array of 832 words read from 0x0400: 768 IR pixel codes
        followed by housekeeping words (ambient, gain, compensation pixels,
        supply voltage).
    status : int
        Status register read right after the frame.  Bit 0 is the subpage
        that was captured.
    control : int
        Control register read right after the frame.  Bits 10-11 hold the
        ADC resolution, bit 12 selects chess (1) or interleaved (0) mode.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    words: np.ndarray
    status: int = Field(default=0, ge=0, le=0xFFFF)
    control: int = Field(default=0x1901, ge=0, le=0xFFFF)

    @field_validator("words", mode="before")
    @classmethod
    def validate_words(cls, v):
        arr = np.asarray(v)
        if arr.shape != (FRAME_WORDS,):
            raise ValueError(f"A raw frame holds {FRAME_WORDS} words, got {arr.shape}")
        if arr.min() < 0 or arr.max() > 0xFFFF:
            raise ValueError("Frame words must be unsigned 16-bit values")
        arr = arr.astype(np.uint16)
        arr.setflags(write=False)
        return arr

    @property
    def subpage(self) -> int:
        return self.status & 0x0001

    @property
    def resolution(self) -> int:
        return (self.control & 0x0C00) >> 10

    @property
    def chess_mode(self) -> int:
        return (self.control & 0x1000) >> 12

    def signed(self, index: int) -> np.float64:
        """Word ``index`` reinterpreted as a signed 16-bit value."""
        return np.float64(self.words[index:index + 1].view(np.int16)[0])

    @property
    def ir_data(self) -> np.ndarray:
        return self.words[:PIXEL_COUNT].view(np.int16).astype(np.float64)

    @property
    def vdd_raw(self) -> float:
        return self.signed(VDD_WORD)

    @property
    def ptat(self) -> float:
        return self.signed(PTAT_WORD)

    @property
    def vbe(self) -> float:
        return self.signed(VBE_WORD)

    @property
    def gain_raw(self) -> float:
        return self.signed(GAIN_WORD)

    @property
    def cp_raw(self) -> np.ndarray:
        return np.array([self.signed(CP_SUBPAGE_0_WORD),
                         self.signed(CP_SUBPAGE_1_WORD)])
