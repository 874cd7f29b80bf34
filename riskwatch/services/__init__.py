"""
Core services for the application.

This package contains the risk model, alert policy, evaluation engine and the
patient-facing services built on top of them.
"""

from .alert_policy import decide, should_suppress
from .context import (
    AdminContext,
    DoctorContext,
    PatientContext,
    RequestContext,
    require_patient,
    resolve_context,
)
from .portal import (
    AlertAcknowledgementService,
    PatientDashboardService,
    PointsAction,
    PointsService,
    VitalsSubmissionService,
)
from .risk_engine import RiskEvaluationEngine
from .risk_model import compute_risk
from .serialization import PatientSerializer
from .stores import HealthStore, Result

__all__ = [
    "AdminContext",
    "AlertAcknowledgementService",
    "DoctorContext",
    "HealthStore",
    "PatientContext",
    "PatientDashboardService",
    "PatientSerializer",
    "PointsAction",
    "PointsService",
    "RequestContext",
    "Result",
    "RiskEvaluationEngine",
    "VitalsSubmissionService",
    "compute_risk",
    "decide",
    "require_patient",
    "resolve_context",
    "should_suppress",
]
