import numpy as np
import pytest

from ThermalArrayTool.CalibrationDecoder import CalibrationDecoder
from ThermalArrayTool.RawFrame import RawFrame
from ThermalArrayTool.TemperatureConverter import (TA_SHIFT, calculate_to, chess_pattern,
                                                   conversion_pattern, get_ta,
                                                   get_vdd, interleave_pattern,
                                                   subpage_pattern)

from conftest import (CENTER_PIXEL, EXPECTED_CENTER, EXPECTED_TA, EXPECTED_VDD,
                      eeprom_words, frame_words)

PIXELS = np.arange(768)


def test_interleave_pattern():
    grid = interleave_pattern(PIXELS).reshape(24, 32)
    assert (grid[0::2] == 0).all()
    assert (grid[1::2] == 1).all()


def test_chess_pattern():
    rows, cols = np.indices((24, 32))
    np.testing.assert_array_equal(chess_pattern(PIXELS).reshape(24, 32),
                                  (rows + cols) % 2)


def test_conversion_pattern():
    grid = conversion_pattern(PIXELS).reshape(24, 32)
    np.testing.assert_array_equal(grid[0, :8], [0, -1, 0, 1, 0, -1, 0, 1])
    np.testing.assert_array_equal(grid[1, :8], [0, 1, 0, -1, 0, 1, 0, -1])


def test_subpage_pattern_selects_mode():
    assert subpage_pattern(33, 1) == 0
    assert subpage_pattern(33, 0) == 1


def test_vdd_and_ta(calibration, raw_frame):
    assert get_vdd(raw_frame, calibration) == pytest.approx(EXPECTED_VDD)
    assert get_ta(raw_frame, calibration) == pytest.approx(EXPECTED_TA)


def test_vdd_resolution_correction(calibration):
    # ADC at resolution 3 reports twice the calibrated code
    words = frame_words()
    words[810] = 0x10000 - 2 * 13056
    frame = RawFrame(words=words, control=0x1D01)
    assert get_vdd(frame, calibration) == pytest.approx(EXPECTED_VDD)


def test_center_pixel_temperature(calibration, raw_frame):
    to = calculate_to(raw_frame, calibration, 0.95)
    assert to[CENTER_PIXEL] == pytest.approx(EXPECTED_CENTER, abs=0.5)


def test_other_subpage_left_at_zero(calibration, raw_frame):
    to = calculate_to(raw_frame, calibration)
    selected = chess_pattern(PIXELS) == 0
    assert (to[~selected] == 0.0).all()
    assert (to[selected] > 0.0).all()
    assert to[CENTER_PIXEL + 1] == 0.0


def test_second_subpage(calibration):
    frame = RawFrame(words=frame_words(), status=1, control=0x1901)
    to = calculate_to(frame, calibration)
    assert to[CENTER_PIXEL] == 0.0
    assert to[CENTER_PIXEL + 1] == pytest.approx(EXPECTED_CENTER, abs=0.5)


def test_interleaved_readout(calibration):
    frame = RawFrame(words=frame_words(), status=0, control=0x0901)
    to = calculate_to(frame, calibration).reshape(24, 32)
    assert (to[1::2] == 0.0).all()
    assert (to[0::2] > 0.0).all()


def test_deterministic(calibration, raw_frame):
    first = calculate_to(raw_frame, calibration)
    second = calculate_to(raw_frame, calibration)
    assert first.tobytes() == second.tobytes()


def test_mode_mismatch_is_deterministic():
    words = eeprom_words()
    words[10] = 0x0800
    calibration = CalibrationDecoder(words).decode()
    frame = RawFrame(words=frame_words(), status=0, control=0x1901)
    first = calculate_to(frame, calibration)
    assert first.tobytes() == calculate_to(frame, calibration).tobytes()


def test_hotter_scene_reads_hotter(calibration, raw_frame):
    words = frame_words()
    words[:768] = 200
    hot = calculate_to(RawFrame(words=words), calibration)
    cold = calculate_to(raw_frame, calibration)
    assert hot[CENTER_PIXEL] > cold[CENTER_PIXEL]


def test_reflected_temperature_changes_result(calibration, raw_frame):
    default = calculate_to(raw_frame, calibration, 0.95)
    shifted = calculate_to(raw_frame, calibration, 0.95, EXPECTED_TA - 20)
    assert default[CENTER_PIXEL] != shifted[CENTER_PIXEL]


@pytest.mark.parametrize("emissivity", [0.0, -0.1, 1.01])
def test_invalid_emissivity(calibration, raw_frame, emissivity):
    with pytest.raises(ValueError):
        calculate_to(raw_frame, calibration, emissivity)


def test_zero_frame_yields_nan(calibration):
    frame = RawFrame(words=np.zeros(832), status=0, control=0x1901)
    assert np.isnan(get_ta(frame, calibration))
    to = calculate_to(frame, calibration)
    selected = chess_pattern(PIXELS) == 0
    assert np.isnan(to[selected]).all()
    assert (to[~selected] == 0.0).all()


def test_zero_gain_word(calibration):
    words = frame_words()
    words[778] = 0
    to = calculate_to(RawFrame(words=words), calibration)
    assert not np.isfinite(to[chess_pattern(PIXELS) == 0]).any()


def test_zero_supply_slope(raw_frame):
    words = eeprom_words()
    words[51] = 0x0068  # kVdd 0
    calibration = CalibrationDecoder(words).decode()
    assert not np.isfinite(get_vdd(raw_frame, calibration))
    calculate_to(raw_frame, calibration)


def test_precomputed_vdd_and_ta(calibration, raw_frame):
    vdd = get_vdd(raw_frame, calibration)
    ta = get_ta(raw_frame, calibration, vdd)
    default = calculate_to(raw_frame, calibration, 0.95)
    passed = calculate_to(raw_frame, calibration, 0.95, ta - TA_SHIFT, vdd=vdd, ta=ta)
    assert default.tobytes() == passed.tobytes()
