### Calibration field map ###
# Date : 10/19/2026
# File : CalibrationFields.py

from pydantic import BaseModel, ConfigDict, Field
import numpy as np

EEPROM_ADDRESS = 0x2400
EEPROM_WORDS = 832
ROWS = 24
COLS = 32
PIXEL_COUNT = ROWS * COLS
PIXEL_WORD_BASE = 64


def sign_extend(value, width):
    """
    Reinterpret the low ``width`` bits of ``value`` as two's complement.

    Works on plain ints as well as integer ``np.ndarray`` values.
    """
    if width <= 0:
        return value
    sign = 1 << (width - 1)
    return (value ^ sign) - sign


class BitField(BaseModel):
    """
    Location and encoding of one coefficient inside the EEPROM dump.

    Parameters
    ----------
    word : int
        Index of the 16-bit word in the dump (for per-pixel fields, the
        word of pixel 0).
    mask : int
        Bit mask applied to the word before shifting.
    shift : int
        Right shift applied after masking.
    signed_width : int
        Width of the field in bits when it is two's complement, ``0`` for
        unsigned fields.
    scale : float
        Multiplier applied after sign extension.  Every fixed scale in the
        map is a power of two, so scaling is exact in float64.
    """
    model_config = ConfigDict(frozen=True)

    word: int = Field(..., ge=0, lt=EEPROM_WORDS)
    mask: int = Field(..., gt=0, le=0xFFFF)
    shift: int = Field(default=0, ge=0, lt=16)
    signed_width: int = Field(default=0, ge=0, le=16)
    scale: float = 1.0

    def extract(self, word):
        value = (word & self.mask) >> self.shift
        if self.signed_width:
            value = sign_extend(value, self.signed_width)
        return value

    def raw(self, words) -> int:
        return self.extract(int(words[self.word]))

    def unpack(self, words) -> float:
        return self.raw(words) * self.scale

    def unpack_pixels(self, words) -> np.ndarray:
        block = np.asarray(words[self.word:self.word + PIXEL_COUNT],
                           dtype=np.int64)
        return self.extract(block) * self.scale


def nibble_table(first_word, entries):
    """Signed 4-bit entries packed four per word, least significant first."""
    return tuple(
        BitField(word=first_word + i // 4,
                 mask=0xF << (4 * (i % 4)),
                 shift=4 * (i % 4),
                 signed_width=4) for i in range(entries))


# Device / mode
DEVICE_SELECT = BitField(word=10, mask=0x0040, shift=6)
CALIBRATION_INTERLEAVED = BitField(word=10, mask=0x0800, shift=11)

# Supply voltage
K_VDD = BitField(word=51, mask=0xFF00, shift=8, signed_width=8, scale=32)
VDD_25 = BitField(word=51, mask=0x00FF)

# PTAT
KV_PTAT = BitField(word=50, mask=0xFC00, shift=10, signed_width=6, scale=2**-12)
KT_PTAT = BitField(word=50, mask=0x03FF, signed_width=10, scale=2**-3)
VPTAT_25 = BitField(word=49, mask=0xFFFF)
ALPHA_PTAT = BitField(word=16, mask=0xF000, shift=12, scale=2**-2)

GAIN_EE = BitField(word=48, mask=0xFFFF, signed_width=16)
TGC = BitField(word=60, mask=0x00FF, signed_width=8, scale=2**-5)
KS_TA = BitField(word=60, mask=0xFF00, shift=8, signed_width=8, scale=2**-13)

# Scale subfields
RESOLUTION_EE = BitField(word=56, mask=0x3000, shift=12)
KV_SCALE = BitField(word=56, mask=0x0F00, shift=8)
KTA_SCALE_1 = BitField(word=56, mask=0x00F0, shift=4)
KTA_SCALE_2 = BitField(word=56, mask=0x000F)

# Range dependent sensitivity
KS_TO = (
    BitField(word=61, mask=0x00FF, signed_width=8),
    BitField(word=61, mask=0xFF00, shift=8, signed_width=8),
    BitField(word=62, mask=0x00FF, signed_width=8),
    BitField(word=62, mask=0xFF00, shift=8, signed_width=8),
)
KS_TO_SCALE = BitField(word=63, mask=0x000F)
CT_STEP = BitField(word=63, mask=0x3000, shift=12, scale=10)
CT_2 = BitField(word=63, mask=0x00F0, shift=4)
CT_3 = BitField(word=63, mask=0x0F00, shift=8)

# Compensation pixels
CP_ALPHA_0 = BitField(word=57, mask=0x03FF, signed_width=10)
CP_ALPHA_RATIO = BitField(word=57, mask=0xFC00, shift=10, signed_width=6, scale=2**-7)
CP_OFFSET_0 = BitField(word=58, mask=0x03FF, signed_width=10)
CP_OFFSET_DELTA = BitField(word=58, mask=0xFC00, shift=10, signed_width=6)
CP_KTA = BitField(word=59, mask=0x00FF, signed_width=8)
CP_KV = BitField(word=59, mask=0xFF00, shift=8, signed_width=8)

# Interleave / chess corrections
IL_CHESS_C = (
    BitField(word=53, mask=0x003F, signed_width=6, scale=2**-4),
    BitField(word=53, mask=0x07C0, shift=6, signed_width=5, scale=2**-1),
    BitField(word=53, mask=0xF800, shift=11, signed_width=5, scale=2**-3),
)

# Offset
OCC_REM_SCALE = BitField(word=16, mask=0x000F)
OCC_COL_SCALE = BitField(word=16, mask=0x00F0, shift=4)
OCC_ROW_SCALE = BitField(word=16, mask=0x0F00, shift=8)
OFFSET_REF = BitField(word=17, mask=0xFFFF, signed_width=16)
OCC_ROW = nibble_table(18, ROWS)
OCC_COL = nibble_table(24, COLS)

# Sensitivity
ACC_REM_SCALE = BitField(word=32, mask=0x000F)
ACC_COL_SCALE = BitField(word=32, mask=0x00F0, shift=4)
ACC_ROW_SCALE = BitField(word=32, mask=0x0F00, shift=8)
ALPHA_SCALE = BitField(word=32, mask=0xF000, shift=12)
ALPHA_REF = BitField(word=33, mask=0xFFFF)
ACC_ROW = nibble_table(34, ROWS)
ACC_COL = nibble_table(40, COLS)

# Kv / Kta averages, ordered by split index 2 * (row % 2) + (col % 2)
KV_AVERAGE = (
    BitField(word=52, mask=0xF000, shift=12, signed_width=4),
    BitField(word=52, mask=0x00F0, shift=4, signed_width=4),
    BitField(word=52, mask=0x0F00, shift=8, signed_width=4),
    BitField(word=52, mask=0x000F, signed_width=4),
)
KTA_AVERAGE = (
    BitField(word=54, mask=0xFF00, shift=8, signed_width=8),
    BitField(word=55, mask=0xFF00, shift=8, signed_width=8),
    BitField(word=54, mask=0x00FF, signed_width=8),
    BitField(word=55, mask=0x00FF, signed_width=8),
)

# Per-pixel words
PIXEL_OFFSET = BitField(word=PIXEL_WORD_BASE, mask=0xFC00, shift=10, signed_width=6)
PIXEL_ALPHA = BitField(word=PIXEL_WORD_BASE, mask=0x03F0, shift=4, signed_width=6)
PIXEL_KTA = BitField(word=PIXEL_WORD_BASE, mask=0x000E, shift=1, signed_width=3)
PIXEL_OUTLIER = BitField(word=PIXEL_WORD_BASE, mask=0x0001)
