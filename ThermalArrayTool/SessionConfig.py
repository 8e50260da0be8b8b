### SessionConfig Class ###
# Date : 10/19/2026
# File : SessionConfig.py

from enum import IntEnum
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Literal, Optional

from .TemperatureConverter import TA_SHIFT


class RefreshRate(IntEnum):
    """Refresh rate codes written to control register bits 7-9."""
    HZ_0_5 = 0
    HZ_1 = 1
    HZ_2 = 2
    HZ_4 = 3
    HZ_8 = 4
    HZ_16 = 5
    HZ_32 = 6
    HZ_64 = 7


class DisplayBounds(BaseModel):
    """
    Presentation limits handed to the rendering collaborator.

    Parameters
    ----------
    lower : float
        Temperature mapped to the cold end of the palette [degC].
    upper : float
        Temperature mapped to the hot end of the palette [degC].  Must be
        strictly greater than ``lower``.
    """
    model_config = ConfigDict(frozen=True)

    lower: float = 20.0
    upper: float = 33.0

    @model_validator(mode="after")
    def validate_order(self):
        if not self.lower < self.upper:
            raise ValueError(
                f"Lower bound {self.lower} must be below upper bound {self.upper}")
        return self

    def with_lower(self, lower: float) -> "DisplayBounds":
        return DisplayBounds(lower=lower, upper=self.upper)

    def with_upper(self, upper: float) -> "DisplayBounds":
        return DisplayBounds(lower=self.lower, upper=upper)


class StreamConfig(BaseModel):
    """
    Wire format of the frame stream.

    Parameters
    ----------
    byte_order : {'<', '>'}, optional
        ``struct`` byte-order prefix used for both the length field and
        the doubles.  Both ends must agree.  Default is ``'<'``
        (little-endian, what the display node expects).
    """
    model_config = ConfigDict(frozen=True)

    byte_order: Literal["<", ">"] = "<"


class SessionConfig(BaseModel):
    """
    Configuration for one acquisition session.

    Pass an instance of this class to ``ThermalSession``.

    Parameters
    ----------
    emissivity : float, optional
        Object emissivity in ``(0, 1]``.  Default is ``0.95``.
    reflected_temperature : float or None, optional
        Reflected temperature [degC].  ``None`` uses the sensor ambient
        temperature minus ``ta_shift`` for every frame.  Default is
        ``None``.
    ta_shift : float, optional
        Offset between the die temperature and the assumed surroundings
        [degC].  Default is ``TA_SHIFT`` (8.0).
    refresh_rate : RefreshRate, optional
        Written into the control register when the session opens.
        Default is ``RefreshRate.HZ_64``.
    bounds : DisplayBounds, optional
        Initial presentation limits.  Default is 20..33 degC.
    ready_poll_limit : int or None, optional
        Maximum number of status reads while waiting for new data before
        the cycle is aborted with ``TransportError``.  ``None`` polls
        indefinitely.  Default is ``None``.
    channel_size : int, optional
        Capacity of the merged-matrix queue; the oldest matrix is dropped
        when it is full.  Default is ``2``.
    """
    model_config = ConfigDict(frozen=True)

    emissivity: float = Field(default=0.95, gt=0.0, le=1.0)
    reflected_temperature: Optional[float] = None
    ta_shift: float = TA_SHIFT
    refresh_rate: RefreshRate = RefreshRate.HZ_64
    bounds: DisplayBounds = Field(default_factory=DisplayBounds)
    ready_poll_limit: Optional[int] = Field(default=None, gt=0)
    channel_size: int = Field(default=2, ge=1)
