### CalibrationDecoder Class ###
# Date : 10/19/2026
# File : CalibrationDecoder.py

import logging
from itertools import combinations, product

import numpy as np

from . import CalibrationFields as F
from .CalibrationFields import COLS, EEPROM_WORDS, PIXEL_COUNT, PIXEL_WORD_BASE, ROWS
from .CalibrationSet import CalibrationSet
from .Exceptions import (AdjacentBadPixelsError, CalibrationError,
                         InvalidDeviceError, TooManyBrokenPixelsError,
                         TooManyDeviatingPixelsError,
                         TooManyOutlierPixelsError)

LOG = logging.getLogger(__name__)

MAX_FLAGGED_PIXELS = 4
# Linear index differences that put two pixels in the same or a touching cell
ADJACENT_OFFSETS = frozenset((-33, -32, -31, -1, 0, 1, 31, 32, 33))


def pixels_adjacent(pixel_a: int, pixel_b: int) -> bool:
    return (pixel_a - pixel_b) in ADJACENT_OFFSETS


def split_index() -> np.ndarray:
    """Row/column parity class of every pixel: ``2 * (row % 2) + col % 2``."""
    p = np.arange(PIXEL_COUNT)
    return 2 * ((p // COLS) % 2) + p % 2


class CalibrationDecoder:
    """
    Decodes an 832-word EEPROM dump into a ``CalibrationSet``.

    Every coefficient is read through the ``BitField`` map in
    ``CalibrationFields``; this class only combines the unpacked fields
    the way the compensation model expects.

    Parameters
    ----------
    eeprom_words : sequence of int
        The dump read from 0x2400, one unsigned 16-bit value per word.

    Raises
    ------
    CalibrationError
        If the dump is not 832 unsigned 16-bit words.
    """

    def __init__(self, eeprom_words):
        words = np.asarray(eeprom_words, dtype=np.int64)
        if words.shape != (EEPROM_WORDS,):
            raise CalibrationError(
                f"EEPROM dump must hold {EEPROM_WORDS} words, got {words.shape}")
        if words.min() < 0 or words.max() > 0xFFFF:
            raise CalibrationError("EEPROM words must be unsigned 16-bit values")
        self.words = words

    def decode(self) -> CalibrationSet:
        """
        Validate the dump and extract all calibration parameters.

        Returns
        -------
        CalibrationSet
            Fully populated, immutable calibration.

        Raises
        ------
        InvalidDeviceError
            If the device-select bit is set.
        BadPixelError
            If the deviating pixel list is too long or two flagged pixels
            touch each other.
        """
        self.check_device()

        params = {}
        params.update(self.extract_vdd_parameters())
        params.update(self.extract_ptat_parameters())
        params.update(self.extract_gain_parameters())
        params.update(self.extract_ks_to_parameters())
        params.update(self.extract_offset_parameters())
        params.update(self.extract_alpha_parameters())
        params.update(self.extract_kta_kv_parameters())
        params.update(self.extract_cp_parameters())
        params.update(self.extract_chess_parameters())

        broken, outlier = self.extract_deviating_pixels()
        calibration = CalibrationSet(**params,
                                     broken_pixels=broken,
                                     outlier_pixels=outlier)
        LOG.info("Calibration decoded: %d broken, %d outlier pixels",
                 len(broken), len(outlier))
        return calibration

    def check_device(self):
        if F.DEVICE_SELECT.raw(self.words) != 0:
            raise InvalidDeviceError(
                "EEPROM device-select bit is set; not a supported device")

    def extract_vdd_parameters(self):
        vdd25 = F.VDD_25.raw(self.words)
        return {
            "k_vdd": int(F.K_VDD.unpack(self.words)),
            "vdd25": ((vdd25 - 256) << 5) - 8192,
        }

    def extract_ptat_parameters(self):
        return {
            "kv_ptat": F.KV_PTAT.unpack(self.words),
            "kt_ptat": F.KT_PTAT.unpack(self.words),
            "vptat25": F.VPTAT_25.raw(self.words),
            "alpha_ptat": F.ALPHA_PTAT.unpack(self.words) + 8.0,
        }

    def extract_gain_parameters(self):
        return {
            "gain_ee": F.GAIN_EE.raw(self.words),
            "tgc": F.TGC.unpack(self.words),
            "ks_ta": F.KS_TA.unpack(self.words),
            "resolution_ee": F.RESOLUTION_EE.raw(self.words),
        }

    def extract_ks_to_parameters(self):
        ks_to_scale = float(1 << (F.KS_TO_SCALE.raw(self.words) + 8))
        ks_to = [field.raw(self.words) / ks_to_scale for field in F.KS_TO]

        step = int(F.CT_STEP.unpack(self.words))
        ct2 = F.CT_2.raw(self.words) * step
        ct3 = ct2 + F.CT_3.raw(self.words) * step
        return {"ks_to": ks_to, "ct": [-40, 0, ct2, ct3]}

    def _row_column_correction(self, row_table, col_table, row_scale, col_scale):
        rows = np.array([f.raw(self.words) for f in row_table], dtype=np.int64)
        cols = np.array([f.raw(self.words) for f in col_table], dtype=np.int64)
        correction = (rows << row_scale)[:, None] + (cols << col_scale)[None, :]
        return correction.reshape(ROWS * COLS)

    def extract_offset_parameters(self):
        correction = self._row_column_correction(
            F.OCC_ROW, F.OCC_COL,
            F.OCC_ROW_SCALE.raw(self.words), F.OCC_COL_SCALE.raw(self.words))
        remainder = F.PIXEL_OFFSET.unpack_pixels(self.words)
        remainder *= 1 << F.OCC_REM_SCALE.raw(self.words)
        offset = F.OFFSET_REF.raw(self.words) + correction + remainder
        return {"offset": offset}

    def extract_alpha_parameters(self):
        correction = self._row_column_correction(
            F.ACC_ROW, F.ACC_COL,
            F.ACC_ROW_SCALE.raw(self.words), F.ACC_COL_SCALE.raw(self.words))
        remainder = F.PIXEL_ALPHA.unpack_pixels(self.words)
        remainder *= 1 << F.ACC_REM_SCALE.raw(self.words)
        alpha_scale = F.ALPHA_SCALE.raw(self.words) + 30
        alpha = (F.ALPHA_REF.raw(self.words) + correction + remainder) / 2.0**alpha_scale
        return {"alpha": alpha}

    def extract_kta_kv_parameters(self):
        split = split_index()

        kta_scale_1 = F.KTA_SCALE_1.raw(self.words) + 8
        kta_scale_2 = F.KTA_SCALE_2.raw(self.words)
        kta_average = np.array([f.raw(self.words) for f in F.KTA_AVERAGE],
                               dtype=np.float64)
        remainder = F.PIXEL_KTA.unpack_pixels(self.words) * (1 << kta_scale_2)
        kta = (kta_average[split] + remainder) / 2.0**kta_scale_1

        kv_scale = F.KV_SCALE.raw(self.words)
        kv_average = np.array([f.raw(self.words) for f in F.KV_AVERAGE],
                              dtype=np.float64)
        kv = kv_average[split] / 2.0**kv_scale
        return {"kta": kta, "kv": kv}

    def extract_cp_parameters(self):
        alpha_scale = F.ALPHA_SCALE.raw(self.words) + 27
        cp_alpha_0 = F.CP_ALPHA_0.raw(self.words) / 2.0**alpha_scale
        cp_alpha_1 = (1 + F.CP_ALPHA_RATIO.unpack(self.words)) * cp_alpha_0

        cp_offset_0 = F.CP_OFFSET_0.raw(self.words)
        cp_offset_1 = cp_offset_0 + F.CP_OFFSET_DELTA.raw(self.words)

        kta_scale_1 = F.KTA_SCALE_1.raw(self.words) + 8
        kv_scale = F.KV_SCALE.raw(self.words)
        return {
            "cp_alpha": [cp_alpha_0, cp_alpha_1],
            "cp_offset": [cp_offset_0, cp_offset_1],
            "cp_kta": F.CP_KTA.raw(self.words) / 2.0**kta_scale_1,
            "cp_kv": F.CP_KV.raw(self.words) / 2.0**kv_scale,
        }

    def extract_chess_parameters(self):
        # Bit 11 set means the device was calibrated in interleaved mode
        return {
            "calibration_mode_ee": F.CALIBRATION_INTERLEAVED.raw(self.words) ^ 1,
            "il_chess_c": [f.unpack(self.words) for f in F.IL_CHESS_C],
        }

    def extract_deviating_pixels(self):
        """
        Scan the per-pixel words for broken (all zero) and outlier (odd)
        pixels and validate the result.

        Returns
        -------
        broken, outlier : list of int
            Flagged pixel indices in scan order.

        Raises
        ------
        BadPixelError
            Subclass naming which rule was violated.
        """
        broken = []
        outlier = []
        for pixel in range(PIXEL_COUNT):
            if len(broken) > MAX_FLAGGED_PIXELS or len(outlier) > MAX_FLAGGED_PIXELS:
                break
            word = int(self.words[PIXEL_WORD_BASE + pixel])
            if word == 0:
                broken.append(pixel)
            elif F.PIXEL_OUTLIER.extract(word):
                outlier.append(pixel)

        if len(broken) > MAX_FLAGGED_PIXELS:
            raise TooManyBrokenPixelsError(
                f"More than {MAX_FLAGGED_PIXELS} broken pixels", broken, outlier)
        if len(outlier) > MAX_FLAGGED_PIXELS:
            raise TooManyOutlierPixelsError(
                f"More than {MAX_FLAGGED_PIXELS} outlier pixels", broken, outlier)
        if len(broken) + len(outlier) > MAX_FLAGGED_PIXELS:
            raise TooManyDeviatingPixelsError(
                f"More than {MAX_FLAGGED_PIXELS} broken and outlier pixels combined",
                broken, outlier)

        pairs = list(combinations(broken, 2)) + list(combinations(outlier, 2))
        pairs += list(product(broken, outlier))
        for pixel_a, pixel_b in pairs:
            if pixels_adjacent(pixel_a, pixel_b):
                raise AdjacentBadPixelsError(
                    f"Flagged pixels {pixel_a} and {pixel_b} are adjacent",
                    broken, outlier)

        if broken or outlier:
            LOG.warning("EEPROM flags broken pixels %s and outlier pixels %s",
                        broken, outlier)
        return broken, outlier
