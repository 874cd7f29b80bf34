"""
Capability-tagged request contexts.

The authenticated user's role is resolved once per request into one of a
closed set of context types. Handlers state the context they need instead of
comparing role strings.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

from riskwatch.errors import AccessDenied, RiskWatchError
from riskwatch.services.retry import guarded
from riskwatch.services.stores import IdentityResolver, Result

Role = Literal["patient", "doctor", "admin"]


class PatientContext(BaseModel):
    """A patient acting on their own records."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    patient_id: int


class DoctorContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int


class AdminContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int


RequestContext = PatientContext | DoctorContext | AdminContext


async def resolve_context(
    identity: IdentityResolver, user_id: int, role: Role
) -> Result[RequestContext, RiskWatchError]:
    """
    Build the request context for an authenticated user.

    Patients are mapped to their patient record here, once; an unmapped
    patient user yields ``Result.err(NotFound)``.
    """
    if role == "doctor":
        return Result.ok(DoctorContext(user_id=user_id))
    if role == "admin":
        return Result.ok(AdminContext(user_id=user_id))
    if role != "patient":
        return Result.err(AccessDenied(f"Unknown role {role!r}"))

    resolved = await guarded("resolve_patient_id", lambda: identity.resolve_patient_id(user_id))
    if resolved.is_err():
        return Result.err(resolved.unwrap_err())
    return Result.ok(PatientContext(user_id=user_id, patient_id=resolved.unwrap()))


def require_patient(context: RequestContext) -> Result[PatientContext, RiskWatchError]:
    """Patient-only operations accept nothing but a PatientContext."""
    if isinstance(context, PatientContext):
        return Result.ok(context)
    return Result.err(
        AccessDenied(f"{type(context).__name__} cannot perform patient-only operations")
    )
