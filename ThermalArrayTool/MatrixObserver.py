import logging
import queue
from abc import ABC, abstractmethod

import numpy as np

from .SessionConfig import DisplayBounds

LOG = logging.getLogger(__name__)


class MatrixObserver(ABC):
    """
    Receives every merged temperature matrix a producer publishes.

    ``on_matrix`` is called from the producing worker thread with a private
    copy of the matrix (shape ``(24, 32)``, degC) and the display bounds in
    effect.  Implementations must return quickly and must not block the
    producer.
    """

    @abstractmethod
    def on_matrix(self, matrix: np.ndarray, bounds: DisplayBounds) -> None:
        ...


def publish_latest(channel: queue.Queue, item) -> bool:
    """
    Put ``item`` on a bounded channel, dropping the oldest entry when full.

    Returns
    -------
    bool
        ``True`` if the item was queued.
    """
    if channel.full():
        try:
            channel.get_nowait()
        except queue.Empty:
            pass
    try:
        channel.put_nowait(item)
        return True
    except queue.Full:
        LOG.debug("Matrix channel full; matrix dropped")
        return False
