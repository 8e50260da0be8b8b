### CalibrationSet Class ###
# Date : 10/19/2026
# File : CalibrationSet.py

from pydantic import BaseModel, ConfigDict, Field, field_validator
import numpy as np
from typing import List, Tuple

from .CalibrationFields import PIXEL_COUNT


class CalibrationSet(BaseModel):
    """
    Factory calibration constants decoded from one sensor's EEPROM.

    Instances are produced by ``CalibrationDecoder`` and never change
    afterwards: the model is frozen and every array is flagged read-only,
    so a set can be handed to worker threads without copying.

    Attributes
    ----------
    k_vdd, vdd25 : int
        Supply voltage slope and 25 degC reference [LSB].
    kv_ptat, kt_ptat : float
        PTAT supply and temperature sensitivities.
    vptat25 : int
        PTAT reading at 25 degC.
    alpha_ptat : float
        Virtual PTAT reference coefficient.
    gain_ee : int
        Gain reference used to normalise every frame.
    tgc : float
        Temperature gradient coefficient applied to the compensation pixel.
    ks_ta : float
        Ambient dependence of the pixel sensitivity.
    resolution_ee : int
        ADC resolution code the device was calibrated at.
    calibration_mode_ee : int
        ``1`` if the device was calibrated in chess mode, ``0`` for
        interleaved.  Compared against the control register mode bit.
    cp_kv, cp_kta : float
        Supply and ambient dependence of the compensation pixel offsets.
    ks_to : np.ndarray
        Shape ``(4,)`` range-dependent sensitivity slopes.
    ct : np.ndarray
        Shape ``(4,)`` range breakpoints [degC], ``ct[0] = -40``,
        ``ct[1] = 0``.
    alpha, offset, kta, kv : np.ndarray
        Shape ``(768,)`` row-major per-pixel sensitivity, offset [LSB],
        ambient coefficient and supply coefficient.
    cp_alpha, cp_offset : np.ndarray
        Shape ``(2,)`` compensation pixel sensitivity and offset per
        subpage.
    il_chess_c : np.ndarray
        Shape ``(3,)`` interleave/chess conversion corrections.
    broken_pixels, outlier_pixels : list of int
        Flagged pixel indices (at most four each on a valid device).
        Informational only; conversion does not special-case them.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    k_vdd: int
    vdd25: int
    kv_ptat: float
    kt_ptat: float
    vptat25: int
    alpha_ptat: float
    gain_ee: int
    tgc: float
    ks_ta: float
    resolution_ee: int = Field(..., ge=0, le=3)
    calibration_mode_ee: int = Field(..., ge=0, le=1)
    cp_kv: float
    cp_kta: float

    ks_to: np.ndarray
    ct: np.ndarray
    alpha: np.ndarray
    offset: np.ndarray
    kta: np.ndarray
    kv: np.ndarray
    cp_alpha: np.ndarray
    cp_offset: np.ndarray
    il_chess_c: np.ndarray

    broken_pixels: List[int] = Field(default_factory=list, max_length=5)
    outlier_pixels: List[int] = Field(default_factory=list, max_length=5)

    @field_validator("alpha", "offset", "kta", "kv", mode="before")
    @classmethod
    def validate_pixel_array(cls, v):
        return _frozen_array(v, (PIXEL_COUNT,))

    @field_validator("ks_to", "ct", mode="before")
    @classmethod
    def validate_range_table(cls, v):
        return _frozen_array(v, (4,))

    @field_validator("cp_alpha", "cp_offset", mode="before")
    @classmethod
    def validate_cp_pair(cls, v):
        return _frozen_array(v, (2,))

    @field_validator("il_chess_c", mode="before")
    @classmethod
    def validate_il_chess(cls, v):
        return _frozen_array(v, (3,))

    @property
    def bad_pixels(self) -> List[int]:
        return sorted(set(self.broken_pixels) | set(self.outlier_pixels))


def _frozen_array(v, shape: Tuple[int, ...]) -> np.ndarray:
    arr = np.array(v, dtype=np.float64)
    if arr.shape != shape:
        raise ValueError(f"Expected shape {shape}, got {arr.shape}")
    arr.setflags(write=False)
    return arr
