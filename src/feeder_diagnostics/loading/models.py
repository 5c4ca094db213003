from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, confloat, field_validator, model_validator

from . import constants as c


def safe_number(value: Any) -> float:
    """
    Coerce a form value to a float.

    Empty, missing, non-numeric and non-finite values become 0.0.
    """
    if value is None:
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        # float() also takes digit separators, form input does not
        if not value or "_" in value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def coerce_rating(value: Any) -> Optional[float]:
    """Parse a kVA rating; None when it is missing or unparsable."""
    if value is None or (isinstance(value, str) and (not value.strip() or "_" in value)):
        return None
    try:
        rating = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(rating):
        return None
    return rating


class FeederLegReading(BaseModel):
    """Phase and neutral current readings (A) of one feeder leg."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = Field(None, description="Leg identifier assigned by the record form.")
    red_phase_current: float = Field(0.0, alias="redPhaseCurrent", description="Red phase current (A).")
    yellow_phase_current: float = Field(0.0, alias="yellowPhaseCurrent", description="Yellow phase current (A).")
    blue_phase_current: float = Field(0.0, alias="bluePhaseCurrent", description="Blue phase current (A).")
    neutral_current: float = Field(0.0, alias="neutralCurrent", description="Measured neutral current (A).")

    @field_validator(
        "red_phase_current",
        "yellow_phase_current",
        "blue_phase_current",
        "neutral_current",
        mode="before",
    )
    @classmethod
    def _coerce_current(cls, v: Any) -> float:
        return safe_number(v)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @classmethod
    def from_values(cls, *values: Any) -> "FeederLegReading":
        """Build a leg from positional red, yellow, blue, neutral values."""
        names = ("red_phase_current", "yellow_phase_current", "blue_phase_current", "neutral_current")
        return cls(**dict(zip(names, values)))

    @property
    def phase_currents(self) -> Tuple[float, float, float]:
        return (self.red_phase_current, self.yellow_phase_current, self.blue_phase_current)


def coerce_legs(legs: Optional[Iterable[Any]]) -> List[FeederLegReading]:
    """
    Normalize caller-supplied legs to FeederLegReading instances.

    Accepts readings, mappings (snake_case or camelCase keys) and
    (red, yellow, blue[, neutral]) sequences or numpy rows. Anything
    else counts as a leg with all currents at zero.
    """
    result: List[FeederLegReading] = []
    for leg in (() if legs is None else legs):
        if isinstance(leg, FeederLegReading):
            result.append(leg)
        elif isinstance(leg, Mapping):
            result.append(FeederLegReading.model_validate(dict(leg)))
        elif isinstance(leg, np.ndarray) or (isinstance(leg, Sequence) and not isinstance(leg, (str, bytes))):
            result.append(FeederLegReading.from_values(*list(leg)[:4]))
        else:
            result.append(FeederLegReading())
    return result


class LoadMonitoringInputs(BaseModel):
    """A load monitoring record as submitted by the form layer."""

    model_config = ConfigDict(populate_by_name=True)

    rating_kva: Optional[float] = Field(None, alias="rating", description="Transformer rating (kVA).")
    feeder_legs: List[FeederLegReading] = Field(
        default_factory=list, alias="feederLegs", description="Feeder leg readings."
    )

    # Record context, not used in any calculation
    substation_name: Optional[str] = Field(None, alias="substationName")
    substation_number: Optional[str] = Field(None, alias="substationNumber")
    location: Optional[str] = None
    peak_load_status: Optional[str] = Field(
        None, alias="peakLoadStatus", description="Peak period of the reading (e.g. 'day' or 'night')."
    )

    @field_validator("rating_kva", mode="before")
    @classmethod
    def _coerce_rating(cls, v: Any) -> Optional[float]:
        return coerce_rating(v)

    @field_validator("feeder_legs", mode="before")
    @classmethod
    def _coerce_legs(cls, v: Any) -> List[FeederLegReading]:
        if v is None:
            return []
        if isinstance(v, (str, bytes, Mapping)) or not isinstance(v, Iterable):
            raise ValueError("feederLegs must be a list of leg readings")
        return coerce_legs(v)

    @field_validator("substation_name", "substation_number", "location", "peak_load_status", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    def exceeds_leg_limit(self) -> bool:
        return len(self.feeder_legs) > c.MAX_FEEDER_LEGS


class EngineSettings(BaseModel):
    """Thresholds used by the assessment and diagnosis."""

    rated_load_factor: PositiveFloat = Field(
        c.RATED_LOAD_FACTOR, description="kVA to per-phase rated current conversion factor."
    )
    overload_fraction: confloat(gt=0) = Field(
        c.OVERLOAD_FRACTION, description="Fraction of per-phase rated current treated as overload."
    )
    neutral_fraction: confloat(gt=0) = Field(
        c.NEUTRAL_FRACTION, description="Rated neutral as a fraction of rated load."
    )
    neutral_critical_multiplier: confloat(gt=1) = Field(
        c.NEUTRAL_CRITICAL_MULTIPLIER, description="Multiple of rated neutral that is critical."
    )
    imbalance_warning_pct: confloat(ge=0, le=100) = Field(
        c.IMBALANCE_WARNING_PCT, description="Bulk imbalance above which a warning is raised (%)."
    )
    imbalance_critical_pct: confloat(ge=0, le=100) = Field(
        c.IMBALANCE_CRITICAL_PCT, description="Bulk imbalance above which the level is critical (%)."
    )
    leg_imbalance_pct: confloat(ge=0, le=100) = Field(
        c.LEG_IMBALANCE_PCT, description="Per-leg imbalance at which the report flags a leg (%)."
    )
    leg_critical_imbalance_pct: confloat(ge=0, le=100) = Field(
        c.LEG_CRITICAL_IMBALANCE_PCT, description="Per-leg imbalance reported as critical (%)."
    )
    min_rebalance_amps: confloat(ge=0) = Field(
        c.MIN_REBALANCE_AMPS, description="Smallest excess over the phase mean given a move instruction (A)."
    )
    load_status_average_pct: confloat(ge=0) = Field(
        c.LOAD_STATUS_AVERAGE_PCT, description="Percentage load at which status becomes AVERAGE."
    )
    load_status_overload_pct: confloat(ge=0) = Field(
        c.LOAD_STATUS_OVERLOAD_PCT, description="Percentage load at which status becomes OVERLOAD."
    )

    @model_validator(mode="after")
    def _ordered_bands(self) -> "EngineSettings":
        if self.imbalance_critical_pct < self.imbalance_warning_pct:
            raise ValueError("imbalance_critical_pct must be >= imbalance_warning_pct")
        if self.leg_critical_imbalance_pct < self.leg_imbalance_pct:
            raise ValueError("leg_critical_imbalance_pct must be >= leg_imbalance_pct")
        if self.load_status_overload_pct < self.load_status_average_pct:
            raise ValueError("load_status_overload_pct must be >= load_status_average_pct")
        return self

    @classmethod
    def from_json(cls, path: str | Path) -> "EngineSettings":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Settings JSON not found: {path}")
        return cls.model_validate(json.loads(p.read_text(encoding="utf-8")))


DEFAULT_SETTINGS = EngineSettings()
