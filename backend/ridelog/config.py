"""
Decoder settings.

Settings are read once (usually from the environment) and handed to each
decoder, which keeps its own copy for the whole stream.
"""

import logging
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


logger = logging.getLogger(__name__)


DEFAULT_HIGH_WATER_MARK = 25  # seconds
SYNTHESIS_CAP_FACTOR = 300    # max synthesized samples per gap = factor * HWM

SMART_RECORDING_ENV = "RIDELOG_SMART_RECORDING"
HIGH_WATER_MARK_ENV = "RIDELOG_SMART_RECORDING_HWM"
BAD_NUMBER_POLICY_ENV = "RIDELOG_BAD_NUMBER_POLICY"


class BadNumberPolicy(Enum):
    """What to store when a numeric element cannot be parsed."""

    ZERO = "zero"              # store 0
    LAST = "last"              # store the last good value of the same element
    INVALIDATE = "invalidate"  # store 0 and flag the activity as invalid


@dataclass(frozen=True)
class DecoderSettings:
    """Smart recording policy for the decoder."""

    smart_recording: bool = True
    high_water_mark: int = DEFAULT_HIGH_WATER_MARK
    bad_number_policy: BadNumberPolicy = BadNumberPolicy.ZERO

    def __post_init__(self):
        # Unset or non-positive HWM falls back to the default
        if not self.high_water_mark or self.high_water_mark <= 0:
            object.__setattr__(self, "high_water_mark", DEFAULT_HIGH_WATER_MARK)

    @property
    def synthesis_cap(self) -> int:
        return SYNTHESIS_CAP_FACTOR * self.high_water_mark

    def with_overrides(
        self,
        smart_recording: Optional[bool] = None,
        high_water_mark: Optional[int] = None,
    ) -> "DecoderSettings":
        changes = {}
        if smart_recording is not None:
            changes["smart_recording"] = smart_recording
        if high_water_mark is not None:
            changes["high_water_mark"] = high_water_mark
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "DecoderSettings":
        smart = os.getenv(SMART_RECORDING_ENV, "1") not in ("0", "false", "False", "off")

        hwm_text = os.getenv(HIGH_WATER_MARK_ENV, str(DEFAULT_HIGH_WATER_MARK))
        try:
            hwm = int(hwm_text)
        except ValueError:
            logger.warning(f"Ignoring invalid {HIGH_WATER_MARK_ENV}={hwm_text!r}")
            hwm = DEFAULT_HIGH_WATER_MARK

        policy_text = os.getenv(BAD_NUMBER_POLICY_ENV, BadNumberPolicy.ZERO.value).lower()
        try:
            policy = BadNumberPolicy(policy_text)
        except ValueError:
            logger.warning(f"Ignoring invalid {BAD_NUMBER_POLICY_ENV}={policy_text!r}")
            policy = BadNumberPolicy.ZERO

        return cls(smart_recording=smart, high_water_mark=hwm, bad_number_policy=policy)


# Process-wide settings (set up before decoding starts)
_settings: Optional[DecoderSettings] = None


def get_settings() -> DecoderSettings:
    """Get the process-wide decoder settings."""
    global _settings
    if _settings is None:
        _settings = DecoderSettings.from_env()
    return _settings


def set_settings(settings: Optional[DecoderSettings]) -> None:
    """Replace the process-wide settings (None re-reads the environment)."""
    global _settings
    _settings = settings
