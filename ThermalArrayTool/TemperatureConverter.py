
import numpy as np
import scipy.constants as const
from typing import Optional

from .CalibrationFields import COLS, PIXEL_COUNT
from .CalibrationSet import CalibrationSet
from .RawFrame import RawFrame

SUPPLY_REFERENCE = 3.3  # [V]
TA_REFERENCE = 25.0  # [degC]
TA_SHIFT = 8.0  # Default reflected temperature is Ta - TA_SHIFT [degC]
KELVIN = const.zero_Celsius  # 273.15


def interleave_pattern(pixel):
    """Subpage of ``pixel`` in interleaved mode: the parity of its row."""
    return pixel // COLS - (pixel // (2 * COLS)) * 2


def chess_pattern(pixel):
    """Subpage of ``pixel`` in chess mode: row parity XOR column parity."""
    return interleave_pattern(pixel) ^ (pixel - (pixel // 2) * 2)


def conversion_pattern(pixel):
    """
    Sign of the interleave-to-chess conversion correction for ``pixel``.

    Returns ``-1`` on columns that are 1 modulo 4, ``+1`` on columns that
    are 3 modulo 4 and ``0`` on even columns, negated on odd rows.
    """
    quad = (pixel + 2) // 4 - (pixel + 3) // 4 + (pixel + 1) // 4 - pixel // 4
    return quad * (1 - 2 * interleave_pattern(pixel))


def subpage_pattern(pixel, chess_mode):
    """Subpage that ``pixel`` belongs to under the given readout mode."""
    if chess_mode:
        return chess_pattern(pixel)
    return interleave_pattern(pixel)


def get_vdd(frame: RawFrame, calibration: CalibrationSet) -> float:
    """
    Computes the sensor supply voltage for a frame.

    The raw reading is first rescaled from the ADC resolution in the
    control register to the resolution the device was calibrated at.

    Parameters
    ----------
    frame : RawFrame
        Frame carrying the raw supply word and the control register.
    calibration : CalibrationSet
        Decoded calibration of the same device.

    Returns
    -------
    vdd : np.float64
        Supply voltage in volts.  ``inf``/``nan`` for a calibration with
        a zero slope.
    """
    resolution_correction = 2.0**calibration.resolution_ee / 2.0**frame.resolution
    with np.errstate(divide="ignore", invalid="ignore"):
        return ((resolution_correction * frame.vdd_raw - calibration.vdd25)
                / np.float64(calibration.k_vdd) + SUPPLY_REFERENCE)


def get_ta(frame: RawFrame,
           calibration: CalibrationSet,
           vdd: Optional[float] = None) -> float:
    """
    Computes the sensor's ambient (die) temperature from the PTAT readings.

    Parameters
    ----------
    frame : RawFrame
        Frame carrying the PTAT and Vbe housekeeping words.
    calibration : CalibrationSet
        Decoded calibration of the same device.
    vdd : float, optional
        Supply voltage if already known; computed from ``frame`` otherwise.

    Returns
    -------
    ta : np.float64
        Ambient temperature in degC, ``nan`` when the housekeeping words
        cannot describe a physical state (e.g. an all-zero frame).
    """
    if vdd is None:
        vdd = get_vdd(frame, calibration)

    ptat = frame.ptat
    with np.errstate(divide="ignore", invalid="ignore"):
        ptat_art = ptat / (ptat * calibration.alpha_ptat + frame.vbe) * 2.0**18
        ta = ptat_art / (1 + calibration.kv_ptat * (vdd - SUPPLY_REFERENCE))
        return (ta - calibration.vptat25) / np.float64(calibration.kt_ptat) + TA_REFERENCE


def range_correction(calibration: CalibrationSet) -> np.ndarray:
    """Sensitivity correction at the start of each of the four ranges."""
    ks_to = calibration.ks_to
    ct = calibration.ct
    alpha_corr = np.empty(4)
    with np.errstate(divide="ignore", invalid="ignore"):
        alpha_corr[0] = 1 / (1 + ks_to[0] * 40)
    alpha_corr[1] = 1
    alpha_corr[2] = 1 + ks_to[2] * ct[2]
    alpha_corr[3] = alpha_corr[2] * (1 + ks_to[3] * (ct[3] - ct[2]))
    return alpha_corr


def calculate_to(frame: RawFrame,
                 calibration: CalibrationSet,
                 emissivity: float = 0.95,
                 reflected_temperature: Optional[float] = None,
                 vdd: Optional[float] = None,
                 ta: Optional[float] = None) -> np.ndarray:
    """
    Converts the subpage captured in ``frame`` into object temperatures.

    Raw codes are gain normalised, offset compensated for ambient and
    supply drift, corrected by the compensation pixel and finally
    inverted through the fourth-power radiometric relation.  The inversion
    runs twice: the first estimate selects one of four temperature ranges,
    the second applies that range's sensitivity slope.

    Parameters
    ----------
    frame : RawFrame
        One subpage read with its status and control registers.
    calibration : CalibrationSet
        Decoded calibration of the same device.
    emissivity : float, optional
        Object emissivity in ``(0, 1]``.  Default is ``0.95``.
    reflected_temperature : float, optional
        Temperature of the surroundings reflected by the object [degC].
        Defaults to the ambient temperature minus ``TA_SHIFT``.
    vdd, ta : float, optional
        Supply voltage and ambient temperature of ``frame`` if the caller
        already computed them.

    Returns
    -------
    to : np.ndarray
        ``float64`` array of 768 row-major temperatures [degC].  Pixels
        that belong to the other subpage are left at ``0.0``.  Frames
        whose housekeeping words are not physical (zero gain, zero PTAT)
        yield ``nan`` rather than raising.

    Raises
    ------
    ValueError
        If ``emissivity`` is outside ``(0, 1]``.
    """
    if not 0.0 < emissivity <= 1.0:
        raise ValueError(f"Emissivity must be in (0, 1], got {emissivity}")

    subpage = frame.subpage
    mode = frame.chess_mode
    if vdd is None:
        vdd = get_vdd(frame, calibration)
    if ta is None:
        ta = get_ta(frame, calibration, vdd)
    if reflected_temperature is None:
        reflected_temperature = ta - TA_SHIFT

    modes_differ = mode != calibration.calibration_mode_ee
    il_chess_c = calibration.il_chess_c
    ks_to = calibration.ks_to
    ct = calibration.ct
    alpha_corr = range_correction(calibration)

    pixels = np.arange(PIXEL_COUNT)
    selected = subpage_pattern(pixels, mode) == subpage
    pixels = pixels[selected]

    # Non-physical inputs yield NaN or inf, which the merger never stores
    with np.errstate(invalid="ignore", divide="ignore", over="ignore"):
        ta4 = (np.float64(ta) + KELVIN)**4
        tr4 = (np.float64(reflected_temperature) + KELVIN)**4
        ta_tr = tr4 - (tr4 - ta4) / emissivity

        ta_drift = ta - TA_REFERENCE
        vdd_drift = vdd - SUPPLY_REFERENCE

        ### GAIN ###
        gain = np.float64(calibration.gain_ee) / frame.gain_raw

        ### COMPENSATION PIXELS ###
        cp_offset = np.array(calibration.cp_offset, dtype=np.float64)
        if modes_differ:
            cp_offset[1] += il_chess_c[0]
        ir_cp = frame.cp_raw * gain
        ir_cp -= (cp_offset * (1 + calibration.cp_kta * ta_drift)
                  * (1 + calibration.cp_kv * vdd_drift))

        ### PIXELS OF THE CAPTURED SUBPAGE ###
        ir = frame.ir_data[selected] * gain
        ir -= (calibration.offset[selected]
               * (1 + calibration.kta[selected] * ta_drift)
               * (1 + calibration.kv[selected] * vdd_drift))
        if modes_differ:
            ir += (il_chess_c[2] * (2 * interleave_pattern(pixels) - 1)
                   - il_chess_c[1] * conversion_pattern(pixels))
        ir /= emissivity
        ir -= calibration.tgc * ir_cp[subpage]

        alpha = ((calibration.alpha[selected] - calibration.tgc * calibration.cp_alpha[subpage])
                 * (1 + calibration.ks_ta * ta_drift))

        ### RADIOMETRIC INVERSION ###
        sx = alpha**3 * (ir + alpha * ta_tr)
        sx = np.sqrt(np.sqrt(sx)) * ks_to[1]
        to = np.sqrt(np.sqrt(ir / (alpha * (1 - ks_to[1] * KELVIN) + sx) + ta_tr)) - KELVIN

        temperature_range = np.digitize(to, ct[1:4])
        to = np.sqrt(np.sqrt(
            ir / (alpha * alpha_corr[temperature_range]
                  * (1 + ks_to[temperature_range] * (to - ct[temperature_range])))
            + ta_tr)) - KELVIN

    result = np.zeros(PIXEL_COUNT, dtype=np.float64)
    result[selected] = to
    return result
