import logging
import os
from pathlib import Path
from typing import Sequence, Union

import numpy as np

from .CalibrationDecoder import CalibrationDecoder
from .CalibrationFields import EEPROM_ADDRESS, EEPROM_WORDS
from .CalibrationSet import CalibrationSet
from .RegisterTransport import RegisterTransport

LOG = logging.getLogger(__name__)


def load_eeprom_dump(path: Union[str, os.PathLike]) -> np.ndarray:
    """
    Load a saved EEPROM dump.

    ``.npy`` files are loaded with numpy; anything else is read as text
    with whitespace or comma separated words, decimal or ``0x`` hex.
    """
    path = Path(path)
    if path.suffix.lower() == ".npy":
        return np.load(path).astype(np.int64).ravel()

    tokens = path.read_text().replace(",", " ").split()
    return np.array([int(token, 0) for token in tokens], dtype=np.int64)


class CalibrationSetFactory(object):
    """
    Factory for creating ``CalibrationSet`` objects from any EEPROM source.

    Dispatches on the type of source provided.  Adding a new source only
    requires adding a new ``isinstance`` branch here; callers are
    unaffected.

    Methods
    -------
    create(source)
        Read the 832 EEPROM words from ``source`` and decode them.

    Examples
    --------
    >>> with SMBusTransport(bus=1) as transport:
    ...     cal = CalibrationSetFactory.create(transport)
    >>> cal.alpha.shape
    (768,)
    """

    @staticmethod
    def create(source: Union[RegisterTransport, str, os.PathLike, Sequence[int], np.ndarray]) -> CalibrationSet:
        """
        Construct a ``CalibrationSet`` from an EEPROM source.

        Parameters
        ----------
        source : RegisterTransport, path or sequence of int
            A live transport (the dump is read from 0x2400), a saved dump
            file, or the 832 words themselves.

        Returns
        -------
        CalibrationSet

        Raises
        ------
        ValueError
            If *source* is not a recognised source type.
        CalibrationError
            If the words do not decode into a valid calibration.
        """
        if isinstance(source, RegisterTransport):
            words = source.read_words(EEPROM_ADDRESS, EEPROM_WORDS)
            LOG.debug("Read %d EEPROM words from the sensor", len(words))
        elif isinstance(source, (str, os.PathLike)):
            words = load_eeprom_dump(source)
            LOG.debug("Loaded EEPROM dump from %s", source)
        elif isinstance(source, (np.ndarray, list, tuple)):
            words = source
        else:
            raise ValueError(f"Unsupported calibration source: {type(source)}")

        return CalibrationDecoder(words).decode()
