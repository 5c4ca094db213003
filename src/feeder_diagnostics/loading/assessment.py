"""
Load Assessment
===============

Derived electrical quantities for a transformer and its feeder legs:
- Per-phase bulk load and average current
- Percentage load against the rated per-phase current
- Neutral current from the symmetrical-component formula
- Whole-transformer phase imbalance with severity classification
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from . import constants as c
from .models import DEFAULT_SETTINGS, EngineSettings, FeederLegReading, coerce_legs, coerce_rating, safe_number

logger = logging.getLogger(__name__)

__all__ = [
    "WarningLevel",
    "LoadStatus",
    "LoadAssessment",
    "compute_assessment",
    "classify_neutral",
    "classify_imbalance",
    "classify_load_status",
    "phase_imbalance",
    "current_matrix",
    "leg_imbalances",
    "safe_number",
]


class WarningLevel(Enum):
    """Severity of a neutral or imbalance finding."""
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"


class LoadStatus(Enum):
    """Loading band of the transformer by percentage load."""
    OKAY = "OKAY"
    AVERAGE = "AVERAGE"
    OVERLOAD = "OVERLOAD"


# Record keys used by the persistence and export layers
_RECORD_KEYS = {
    "rated_load": "ratedLoad",
    "red_phase_bulk_load": "redPhaseBulkLoad",
    "yellow_phase_bulk_load": "yellowPhaseBulkLoad",
    "blue_phase_bulk_load": "bluePhaseBulkLoad",
    "average_current": "averageCurrent",
    "percentage_load": "percentageLoad",
    "ten_percent_full_load_neutral": "tenPercentFullLoadNeutral",
    "calculated_neutral": "calculatedNeutral",
    "neutral_warning_level": "neutralWarningLevel",
    "neutral_warning_message": "neutralWarningMessage",
    "imbalance_percentage": "imbalancePercentage",
    "imbalance_warning_level": "imbalanceWarningLevel",
    "imbalance_warning_message": "imbalanceWarningMessage",
    "max_phase_current": "maxPhaseCurrent",
    "min_phase_current": "minPhaseCurrent",
    "avg_phase_current": "avgPhaseCurrent",
}


@dataclass(frozen=True)
class LoadAssessment:
    """
    Loading of a transformer computed from its feeder leg readings.

    All currents are in amperes, percentages in 0-100.

    Attributes:
        rated_load: Per-phase rated current (rating kVA x 1.334)
        red_phase_bulk_load: Red phase current summed over all legs
        yellow_phase_bulk_load: Yellow phase current summed over all legs
        blue_phase_bulk_load: Blue phase current summed over all legs
        average_current: Mean of the three bulk loads
        percentage_load: Average current as a percentage of rated load
        ten_percent_full_load_neutral: Rated neutral current (10% of rated load)
        calculated_neutral: Neutral current implied by the bulk loads
        imbalance_percentage: (max - min) / max of the bulk loads
    """
    rated_load: float = 0.0
    red_phase_bulk_load: float = 0.0
    yellow_phase_bulk_load: float = 0.0
    blue_phase_bulk_load: float = 0.0
    average_current: float = 0.0
    percentage_load: float = 0.0
    ten_percent_full_load_neutral: float = 0.0
    calculated_neutral: float = 0.0
    neutral_warning_level: WarningLevel = WarningLevel.NORMAL
    neutral_warning_message: str = ""
    imbalance_percentage: float = 0.0
    imbalance_warning_level: WarningLevel = WarningLevel.NORMAL
    imbalance_warning_message: str = ""
    max_phase_current: float = 0.0
    min_phase_current: float = 0.0
    avg_phase_current: float = 0.0

    @classmethod
    def empty(cls) -> "LoadAssessment":
        """Assessment for missing rating or readings: all zero, all normal."""
        return cls()

    @property
    def bulk_loads(self) -> Tuple[float, float, float]:
        return (self.red_phase_bulk_load, self.yellow_phase_bulk_load, self.blue_phase_bulk_load)

    @property
    def load_status(self) -> LoadStatus:
        return classify_load_status(self.percentage_load)

    def to_dict(self) -> Dict[str, Any]:
        """Record fields keyed the way load monitoring records store them."""
        out: Dict[str, Any] = {}
        for name, value in asdict(self).items():
            if isinstance(value, WarningLevel):
                value = value.value
            out[_RECORD_KEYS[name]] = value
        return out


def phase_imbalance(red: float, yellow: float, blue: float) -> float:
    """Spread between highest and lowest phase as a percentage of the highest."""
    max_p = max(red, yellow, blue)
    min_p = min(red, yellow, blue)
    return ((max_p - min_p) / max_p) * 100 if max_p > 0 else 0.0


def current_matrix(legs: Sequence[FeederLegReading]) -> np.ndarray:
    """Leg x phase matrix of red, yellow, blue currents."""
    if not legs:
        return np.zeros((0, 3))
    return np.array([leg.phase_currents for leg in legs], dtype=float)


def leg_imbalances(matrix: np.ndarray) -> np.ndarray:
    """Per-leg phase imbalance (%) for a leg x phase current matrix."""
    if matrix.shape[0] == 0:
        return np.zeros(0)
    max_p = matrix.max(axis=1)
    min_p = matrix.min(axis=1)
    safe_max = np.where(max_p > 0, max_p, 1.0)
    # Legs with overflowed (infinite) currents give nan
    with np.errstate(invalid="ignore", over="ignore"):
        return np.where(max_p > 0, ((max_p - min_p) / safe_max) * 100, 0.0)


def classify_neutral(
    calculated_neutral: float,
    ten_percent_full_load_neutral: float,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Tuple[WarningLevel, str]:
    if calculated_neutral > ten_percent_full_load_neutral * settings.neutral_critical_multiplier:
        return WarningLevel.CRITICAL, c.NEUTRAL_CRITICAL_MESSAGE
    if calculated_neutral > ten_percent_full_load_neutral:
        return WarningLevel.WARNING, c.NEUTRAL_WARNING_MESSAGE
    return WarningLevel.NORMAL, ""


def classify_imbalance(
    imbalance_percentage: float,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Tuple[WarningLevel, str]:
    if imbalance_percentage > settings.imbalance_critical_pct:
        return WarningLevel.CRITICAL, c.IMBALANCE_CRITICAL_MESSAGE
    if imbalance_percentage > settings.imbalance_warning_pct:
        return WarningLevel.WARNING, c.IMBALANCE_WARNING_MESSAGE
    return WarningLevel.NORMAL, ""


def classify_load_status(
    percentage_load: float,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> LoadStatus:
    if percentage_load >= settings.load_status_overload_pct:
        return LoadStatus.OVERLOAD
    if percentage_load >= settings.load_status_average_pct:
        return LoadStatus.AVERAGE
    return LoadStatus.OKAY


def compute_assessment(
    rating: Any,
    legs: Optional[Iterable[Any]],
    settings: Optional[EngineSettings] = None,
) -> LoadAssessment:
    """
    Compute the load assessment of a transformer.

    Args:
        rating: Transformer rating (kVA); may be None, a number or a string
        legs: Feeder leg readings, mappings or (R, Y, B, N) sequences
        settings: Threshold overrides

    Returns:
        LoadAssessment; the empty assessment when the rating is missing or
        not positive, or there are no legs
    """
    settings = settings or DEFAULT_SETTINGS
    rating_kva = coerce_rating(rating)
    readings = coerce_legs(legs)

    if rating_kva is None or rating_kva <= 0 or not readings:
        return LoadAssessment.empty()

    with np.errstate(over="ignore"):
        bulk = current_matrix(readings).sum(axis=0)
    red, yellow, blue = (float(v) for v in bulk)

    average_current = (red + yellow + blue) / 3
    rated_load = rating_kva * settings.rated_load_factor
    percentage_load = (average_current * 100) / rated_load if rated_load > 0 else 0.0
    ten_percent_full_load_neutral = settings.neutral_fraction * rated_load

    # In = sqrt(IR² + IY² + IB² - IR·IY - IR·IB - IY·IB)
    radicand = red * red + yellow * yellow + blue * blue - red * yellow - red * blue - yellow * blue
    # Overflowed readings give no usable neutral
    calculated_neutral = math.sqrt(max(0.0, radicand)) if math.isfinite(radicand) else 0.0
    logger.debug(
        f"Bulk loads R={red:.3f} Y={yellow:.3f} B={blue:.3f} -> neutral {calculated_neutral:.3f} A"
    )

    max_phase_current = max(red, yellow, blue)
    min_phase_current = max(0.0, min(red, yellow, blue))
    avg_phase_current = (red + yellow + blue) / 3
    imbalance_percentage = (
        ((max_phase_current - min_phase_current) / max_phase_current) * 100
        if max_phase_current > 0 else 0.0
    )

    neutral_level, neutral_message = classify_neutral(
        calculated_neutral, ten_percent_full_load_neutral, settings
    )
    imbalance_level, imbalance_message = classify_imbalance(imbalance_percentage, settings)

    return LoadAssessment(
        rated_load=rated_load,
        red_phase_bulk_load=red,
        yellow_phase_bulk_load=yellow,
        blue_phase_bulk_load=blue,
        average_current=average_current,
        percentage_load=percentage_load,
        ten_percent_full_load_neutral=ten_percent_full_load_neutral,
        calculated_neutral=calculated_neutral,
        neutral_warning_level=neutral_level,
        neutral_warning_message=neutral_message,
        imbalance_percentage=imbalance_percentage,
        imbalance_warning_level=imbalance_level,
        imbalance_warning_message=imbalance_message,
        max_phase_current=max_phase_current,
        min_phase_current=min_phase_current,
        avg_phase_current=avg_phase_current,
    )
