"""
Load Diagnosis
==============

Turns feeder leg readings into an ordered report of findings and
remediation actions:
- Overloaded phases per leg
- Worst leg phase imbalance
- High neutral current per leg
- Per-leg phase distribution with move/reduce instructions
- Fixed balancing checklist and hazard warning

Each report line is tagged with a DiagnosticKind so presentation code
can style it without inspecting the text.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from . import constants as c
from .assessment import compute_assessment, current_matrix, leg_imbalances
from .models import DEFAULT_SETTINGS, EngineSettings, coerce_legs, safe_number

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    """Presentation category of a report line."""
    OVERLOAD = "overload"
    IMBALANCE = "imbalance"
    NEUTRAL = "neutral"
    INFO = "info"
    ACTION = "action"
    CRITICAL = "critical"
    STEP = "step"
    ALERT = "alert"
    BULLET = "bullet"
    SUCCESS = "success"
    PROMPT = "prompt"
    BLANK = "blank"
    PLAIN = "plain"


FINDING_KINDS = frozenset({DiagnosticKind.OVERLOAD, DiagnosticKind.IMBALANCE, DiagnosticKind.NEUTRAL})


@dataclass(frozen=True)
class DiagnosticLine:
    """One line of the report. `leg` is the 1-based leg it refers to, if any."""
    kind: DiagnosticKind
    text: str
    leg: Optional[int] = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "text": self.text, "leg": self.leg}


@dataclass
class Diagnosis:
    """
    Ordered diagnosis report.

    Attributes:
        lines: Report lines in display order
        problem_leg_index: 0-based index of the leg with the highest
            phase imbalance (None when there are no legs)
    """
    lines: List[DiagnosticLine] = field(default_factory=list)
    problem_leg_index: Optional[int] = None

    def add(self, kind: DiagnosticKind, text: str = "", leg: Optional[int] = None) -> None:
        self.lines.append(DiagnosticLine(kind, text, leg))

    def blank(self) -> None:
        self.add(DiagnosticKind.BLANK)

    @property
    def messages(self) -> List[str]:
        return [line.text for line in self.lines]

    @property
    def has_issues(self) -> bool:
        return any(line.kind in FINDING_KINDS for line in self.lines)


def format_amps(value: float) -> str:
    """One decimal place, ties rounded away from zero on the exact binary value."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    exact = Decimal(value)
    with localcontext() as ctx:
        # Enough digits for the integer part of any finite float
        ctx.prec = max(ctx.prec, exact.adjusted() + 3)
        return str(exact.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _split_in_two(amount: float) -> Tuple[str, str]:
    # Second share is the remainder of the rounded first, so both add up
    first = format_amps(amount / 2)
    second = format_amps(amount - float(first))
    return first, second


def _phases_by_current(currents: Sequence[float]) -> List[Tuple[str, float]]:
    phases = list(zip(c.PHASE_NAMES, (float(v) for v in currents)))
    return sorted(phases, key=lambda p: p[1], reverse=True)


def _add_overload_actions(
    report: Diagnosis,
    leg_no: int,
    overloaded: List[Tuple[str, float]],
    underloaded: List[Tuple[str, float]],
    total_current: float,
    threshold: float,
) -> None:
    report.blank()
    report.add(DiagnosticKind.ACTION, f"🔄 SPECIFIC ACTIONS FOR LEG {leg_no}:", leg_no)

    total_excess = sum(current - threshold for _, current in overloaded)
    total_spare = sum(threshold - current for _, current in underloaded)

    if total_excess <= total_spare:
        targets = " or ".join(name for name, _ in underloaded)
        for name, current in overloaded:
            report.add(
                DiagnosticKind.BULLET,
                f"   • Move {format_amps(current - threshold)}A from {name} phase to {targets} phase",
                leg_no,
            )
        return

    capacity = threshold * 3
    target = total_current / 3
    report.add(DiagnosticKind.CRITICAL, "   ⚠️ CRITICAL: Cannot balance with current capacity!", leg_no)
    report.add(
        DiagnosticKind.BULLET,
        f"   • Total load: {format_amps(total_current)}A (needs {format_amps(capacity)}A max)",
        leg_no,
    )
    report.add(DiagnosticKind.BULLET, f"   • Reduce total load by {format_amps(total_current - capacity)}A", leg_no)
    report.add(DiagnosticKind.BULLET, f"   • Target balanced load: ~{format_amps(target)}A per phase", leg_no)
    for name, current in overloaded:
        reduction = current - target
        if reduction > 0:
            report.add(DiagnosticKind.BULLET, f"   • Reduce {name} phase by {format_amps(reduction)}A", leg_no)


def _add_balancing_actions(
    report: Diagnosis,
    leg_no: int,
    phases: List[Tuple[str, float]],
    total_current: float,
    settings: EngineSettings,
) -> None:
    report.blank()
    report.add(DiagnosticKind.ACTION, f"🔄 BALANCING ACTIONS FOR LEG {leg_no}:", leg_no)

    target = total_current / 3
    heavy = [p for p in phases if p[1] > target]
    light = [p for p in phases if p[1] < target]

    for name, current in heavy:
        excess = current - target
        if excess <= settings.min_rebalance_amps:
            continue
        if len(light) == 1:
            report.add(
                DiagnosticKind.BULLET,
                f"   • Move {format_amps(excess)}A from {name} phase to {light[0][0]} phase",
                leg_no,
            )
        elif len(light) == 2:
            first, second = _split_in_two(excess)
            report.add(DiagnosticKind.BULLET, f"   • Move {first}A from {name} phase to {light[0][0]} phase", leg_no)
            report.add(DiagnosticKind.BULLET, f"   • Move {second}A from {name} phase to {light[1][0]} phase", leg_no)
        else:
            targets = " or ".join(p[0] for p in light)
            report.add(
                DiagnosticKind.BULLET,
                f"   • Move {format_amps(excess)}A from {name} phase to {targets} phase",
                leg_no,
            )


def _add_leg_block(
    report: Diagnosis,
    leg_no: int,
    currents: Sequence[float],
    imbalance: float,
    threshold: float,
    settings: EngineSettings,
) -> None:
    red, yellow, blue = (float(v) for v in currents)

    report.blank()
    report.add(DiagnosticKind.INFO, f"📊 CURRENT PHASE DISTRIBUTION ON LEG {leg_no}:", leg_no)
    report.add(DiagnosticKind.PLAIN, f"   Red Phase: {format_amps(red)}A", leg_no)
    report.add(DiagnosticKind.PLAIN, f"   Yellow Phase: {format_amps(yellow)}A", leg_no)
    report.add(DiagnosticKind.PLAIN, f"   Blue Phase: {format_amps(blue)}A", leg_no)

    if imbalance >= settings.leg_critical_imbalance_pct:
        report.blank()
        report.add(DiagnosticKind.CRITICAL, f"🚨 CRITICAL IMBALANCE DETECTED ON LEG {leg_no}!", leg_no)
        report.add(
            DiagnosticKind.BULLET,
            f"   • Imbalance: {format_amps(imbalance)}% (Severe - requires immediate attention)",
            leg_no,
        )
        report.add(DiagnosticKind.BULLET, "   • This can cause transformer overheating and equipment damage", leg_no)
        report.add(DiagnosticKind.BULLET, "   • Neutral current will be excessive due to poor phase balance", leg_no)

    phases = _phases_by_current((red, yellow, blue))
    overloaded = [p for p in phases if p[1] > threshold]
    underloaded = [p for p in phases if p[1] < threshold]
    total_current = red + yellow + blue

    if overloaded and underloaded:
        _add_overload_actions(report, leg_no, overloaded, underloaded, total_current, threshold)
    elif imbalance >= settings.leg_imbalance_pct:
        _add_balancing_actions(report, leg_no, phases, total_current, settings)


def _add_closing(report: Diagnosis) -> None:
    report.blank()
    report.add(DiagnosticKind.STEP, c.BALANCING_STEPS_HEADER)
    for step in c.BALANCING_STEPS:
        report.add(DiagnosticKind.STEP, step)
    report.blank()
    report.add(DiagnosticKind.ALERT, c.HAZARD_HEADER)
    for bullet in c.HAZARD_BULLETS:
        report.add(DiagnosticKind.BULLET, bullet)


def diagnose_structured(
    rating: Any,
    legs: Optional[Iterable[Any]],
    settings: Optional[EngineSettings] = None,
) -> Diagnosis:
    """
    Build the diagnosis report for a transformer.

    The overload threshold is 80% of the per-phase rated current of the
    whole transformer and is applied to every leg individually. Without a
    rating the threshold is 0, so every loaded phase is reported as an
    overload of infinite share.
    """
    settings = settings or DEFAULT_SETTINGS
    readings = coerce_legs(legs)
    report = Diagnosis()

    if not readings:
        report.add(DiagnosticKind.PROMPT, c.ADD_READINGS_PROMPT)
        return report

    rated_load_per_phase = safe_number(rating) * settings.rated_load_factor
    overload_threshold = rated_load_per_phase * settings.overload_fraction

    matrix = current_matrix(readings)
    imbalances = leg_imbalances(matrix)

    # Overloaded phases, leg by leg
    for idx, currents in enumerate(matrix):
        for name, current in zip(c.PHASE_NAMES, currents):
            current = float(current)
            if current > overload_threshold:
                # A missing rating makes every loaded phase an infinite share
                percent = (current / rated_load_per_phase) * 100 if rated_load_per_phase else math.inf
                report.add(
                    DiagnosticKind.OVERLOAD,
                    f"⚠️ OVERLOAD: {name} phase on Leg {idx + 1} is at {format_amps(percent)}% "
                    f"capacity ({format_amps(current)}A).",
                    idx + 1,
                )

    # Worst leg imbalance; argmax keeps the first of equal values
    worst = int(np.argmax(imbalances))
    report.problem_leg_index = worst
    worst_pct = float(imbalances[worst])
    if worst_pct >= settings.leg_imbalance_pct:
        report.add(
            DiagnosticKind.IMBALANCE,
            f"⚖️ IMBALANCE: Leg {worst + 1} has {format_amps(worst_pct)}% phase imbalance.",
            worst + 1,
        )

    # Neutral against each leg's share of the rated neutral
    assessment = compute_assessment(rating, readings, settings)
    neutral_threshold = assessment.ten_percent_full_load_neutral / max(1, len(readings))
    for idx, leg in enumerate(readings):
        if leg.neutral_current > neutral_threshold and neutral_threshold > 0:
            report.add(
                DiagnosticKind.NEUTRAL,
                f"🔌 HIGH NEUTRAL: Leg {idx + 1} neutral current is {format_amps(leg.neutral_current)}A "
                f"(exceeds safe limit).",
                idx + 1,
            )

    if not report.lines:
        report.add(DiagnosticKind.SUCCESS, c.NO_ISSUES_MESSAGE)
        return report

    logger.debug(f"{len(report.lines)} findings across {len(readings)} legs")

    for idx, currents in enumerate(matrix):
        imbalance = float(imbalances[idx])
        if imbalance >= settings.leg_imbalance_pct or float(currents.max()) > overload_threshold:
            _add_leg_block(report, idx + 1, currents, imbalance, overload_threshold, settings)

    _add_closing(report)
    return report


def diagnose(
    rating: Any,
    legs: Optional[Iterable[Any]],
    settings: Optional[EngineSettings] = None,
) -> List[str]:
    """Diagnosis report as plain text lines, in display order."""
    return diagnose_structured(rating, legs, settings).messages
