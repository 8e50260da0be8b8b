import threading

import numpy as np

from .CalibrationFields import COLS, PIXEL_COUNT, ROWS


class FrameMerger:
    """
    Holds the temperature matrix that both subpages are merged into.

    A pixel is only overwritten when the freshly converted value is finite
    and strictly greater than ``0.0``; otherwise the value from the other
    subpage's last pass is kept.  This also discards genuine sub-zero
    readings, which downstream consumers currently rely on.

    Writers and readers are serialised by a lock, and readers only ever
    receive copies.
    """

    def __init__(self, initial=None):
        if initial is None:
            self._matrix = np.zeros(PIXEL_COUNT, dtype=np.float64)
        else:
            self._matrix = np.array(initial, dtype=np.float64).reshape(PIXEL_COUNT)
        self._lock = threading.Lock()

    def merge(self, subpage_values) -> np.ndarray:
        """
        Merge one subpage's converted values into the matrix.

        Parameters
        ----------
        subpage_values : array-like
            768 temperatures as returned by ``calculate_to``.

        Returns
        -------
        np.ndarray
            Copy of the merged matrix, shape ``(768,)``.
        """
        values = np.asarray(subpage_values, dtype=np.float64)
        if values.shape != (PIXEL_COUNT,):
            raise ValueError(f"Expected {PIXEL_COUNT} values, got {values.shape}")
        update = np.isfinite(values) & (values > 0.0)
        with self._lock:
            self._matrix[update] = values[update]
            return self._matrix.copy()

    def snapshot(self) -> np.ndarray:
        with self._lock:
            return self._matrix.copy()

    def snapshot_2d(self) -> np.ndarray:
        return self.snapshot().reshape(ROWS, COLS)


def center_average(matrix) -> float:
    """Mean of the 3x3 pixel block around the centre of the array."""
    grid = np.asarray(matrix, dtype=np.float64).reshape(ROWS, COLS)
    row, col = ROWS // 2, COLS // 2
    return float(grid[row - 1:row + 2, col - 1:col + 2].mean())
