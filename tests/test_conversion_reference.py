"""
Per-pixel comparison of ``calculate_to`` against a scalar, pixel-by-pixel
rendition of the vendor compensation formula, on a calibration where every
drift, gradient and range term is non-zero.
"""
import itertools
import math

import numpy as np
import pytest

from ThermalArrayTool.CalibrationDecoder import CalibrationDecoder
from ThermalArrayTool.RawFrame import RawFrame
from ThermalArrayTool.TemperatureConverter import calculate_to, get_ta, get_vdd

from conftest import rich_eeprom_words, rich_frame_words

CHESS_CALIBRATED = 0x0000
INTERLEAVE_CALIBRATED = 0x0800
CONTROLS = (0x1901, 0x0901, 0x1501)  # chess, interleaved, chess at resolution 1


def s16(word):
    return word - 65536 if word > 32767 else word


def vendor_to(words, status, control, cal, emissivity=0.95):
    """Scalar pixel loop; returns the temperatures and the range of each pixel."""
    words = [int(w) for w in words]
    resolution = (control & 0x0C00) >> 10
    mode = (control & 0x1000) >> 12

    vdd = (2 ** cal.resolution_ee / 2 ** resolution * s16(words[810]) - cal.vdd25) / cal.k_vdd + 3.3
    ptat = s16(words[800])
    ptat_art = ptat / (ptat * cal.alpha_ptat + s16(words[768])) * 2 ** 18
    ta = (ptat_art / (1 + cal.kv_ptat * (vdd - 3.3)) - cal.vptat25) / cal.kt_ptat + 25
    tr = ta - 8

    ta4 = (ta + 273.15) ** 4
    tr4 = (tr + 273.15) ** 4
    ta_tr = tr4 - (tr4 - ta4) / emissivity

    ks_to = [float(k) for k in cal.ks_to]
    ct = [float(c) for c in cal.ct]
    alpha_corr = [1 / (1 + ks_to[0] * 40), 1.0, 1 + ks_to[2] * ct[2], 0.0]
    alpha_corr[3] = alpha_corr[2] * (1 + ks_to[3] * (ct[3] - ct[2]))

    gain = cal.gain_ee / s16(words[778])

    cp_drift = (1 + cal.cp_kta * (ta - 25)) * (1 + cal.cp_kv * (vdd - 3.3))
    ir_cp = [s16(words[776]) * gain - cal.cp_offset[0] * cp_drift, 0.0]
    if mode == cal.calibration_mode_ee:
        ir_cp[1] = s16(words[808]) * gain - cal.cp_offset[1] * cp_drift
    else:
        ir_cp[1] = s16(words[808]) * gain - (cal.cp_offset[1] + cal.il_chess_c[0]) * cp_drift

    result = [0.0] * 768
    ranges = set()
    for p in range(768):
        il = p // 32 - (p // 64) * 2
        chess = il ^ (p - (p // 2) * 2)
        conversion = ((p + 2) // 4 - (p + 3) // 4 + (p + 1) // 4 - p // 4) * (1 - 2 * il)
        pattern = chess if mode else il
        if pattern != status:
            continue

        ir = s16(words[p]) * gain
        ir -= cal.offset[p] * (1 + cal.kta[p] * (ta - 25)) * (1 + cal.kv[p] * (vdd - 3.3))
        if mode != cal.calibration_mode_ee:
            ir += cal.il_chess_c[2] * (2 * il - 1) - cal.il_chess_c[1] * conversion
        ir /= emissivity
        ir -= cal.tgc * ir_cp[status]

        alpha = (cal.alpha[p] - cal.tgc * cal.cp_alpha[status]) * (1 + cal.ks_ta * (ta - 25))

        sx = math.sqrt(math.sqrt(alpha ** 3 * (ir + alpha * ta_tr))) * ks_to[1]
        to = math.sqrt(math.sqrt(ir / (alpha * (1 - ks_to[1] * 273.15) + sx) + ta_tr)) - 273.15

        if to < ct[1]:
            r = 0
        elif to < ct[2]:
            r = 1
        elif to < ct[3]:
            r = 2
        else:
            r = 3
        ranges.add(r)

        to = math.sqrt(math.sqrt(
            ir / (alpha * alpha_corr[r] * (1 + ks_to[r] * (to - ct[r]))) + ta_tr)) - 273.15
        result[p] = to
    return np.array(result), ranges, vdd, ta


@pytest.fixture(scope="module", params=[CHESS_CALIBRATED, INTERLEAVE_CALIBRATED])
def rich_calibration(request):
    return CalibrationDecoder(rich_eeprom_words(request.param)).decode()


def test_rich_calibration_terms():
    cal = CalibrationDecoder(rich_eeprom_words()).decode()
    assert cal.kv_ptat == 3 / 2**12
    assert cal.kt_ptat == 42.25
    assert cal.ks_ta == 16 / 2**13
    assert cal.tgc == 0.25
    assert cal.cp_kta == 4 / 2**11
    assert cal.cp_kv == 2 / 2**4
    np.testing.assert_array_equal(cal.ks_to, np.array([-100, -90, -80, -70]) / 2**17)
    kv = cal.kv.reshape(24, 32)
    kta = cal.kta.reshape(24, 32)
    assert (kv[0, 0], kv[0, 1], kv[1, 0], kv[1, 1]) == (1 / 16, 3 / 16, 2 / 16, 4 / 16)
    assert (kta[0, 0], kta[0, 1], kta[1, 0], kta[1, 1]) == (14 / 2**11, 34 / 2**11,
                                                            24 / 2**11, 44 / 2**11)
    np.testing.assert_array_equal(cal.offset, np.full(768, -99.0))


def test_interleave_calibrated_mode():
    assert CalibrationDecoder(rich_eeprom_words(INTERLEAVE_CALIBRATED)).decode().calibration_mode_ee == 0


@pytest.mark.parametrize("control,status", list(itertools.product(CONTROLS, (0, 1))))
def test_matches_vendor_formula(rich_calibration, control, status):
    words = rich_frame_words()
    frame = RawFrame(words=words, status=status, control=control)

    expected, ranges, vdd, ta = vendor_to(words, status, control, rich_calibration)
    actual = calculate_to(frame, rich_calibration, 0.95)

    assert get_vdd(frame, rich_calibration) == pytest.approx(vdd, abs=1e-12)
    assert get_ta(frame, rich_calibration) == pytest.approx(ta, abs=1e-9)
    assert ranges == {0, 1, 2, 3}
    np.testing.assert_allclose(actual, expected, rtol=0, atol=1e-9)


def test_drift_terms_move_the_result(rich_calibration):
    words = rich_frame_words()
    frame = RawFrame(words=words, status=0, control=0x1901)
    plain = rich_frame_words()
    plain[810] = 0xCD00  # Vdd back at 3.3 V removes the Kv contribution
    with_kv = calculate_to(frame, rich_calibration)
    without_kv = calculate_to(RawFrame(words=plain, status=0, control=0x1901), rich_calibration)
    selected = with_kv != 0.0
    assert (np.abs(with_kv[selected] - without_kv[selected]) > 1e-3).all()
