"""
Loading Diagnostics
===================

Three-phase transformer load assessment and diagnosis from feeder leg
phase and neutral current readings.
"""

from .models import EngineSettings, FeederLegReading, LoadMonitoringInputs, DEFAULT_SETTINGS
from .assessment import LoadAssessment, LoadStatus, WarningLevel, compute_assessment
from .diagnosis import Diagnosis, DiagnosticKind, DiagnosticLine, diagnose, diagnose_structured

__all__ = [
    "EngineSettings",
    "FeederLegReading",
    "LoadMonitoringInputs",
    "DEFAULT_SETTINGS",
    "LoadAssessment",
    "LoadStatus",
    "WarningLevel",
    "compute_assessment",
    "Diagnosis",
    "DiagnosticKind",
    "DiagnosticLine",
    "diagnose",
    "diagnose_structured",
]
