"""
Maps a risk score onto an alert decision.

Bands: score > 70 is High, 40 < score <= 70 is Medium, anything lower raises
nothing. Every qualifying evaluation produces exactly one decision; optional
suppression against unread alerts is a separate, opt-in step.
"""

from collections.abc import Iterable

from riskwatch.domain.models import Alert, AlertDecision, Severity

HIGH_RISK_THRESHOLD = 70
MODERATE_RISK_THRESHOLD = 40

HIGH_RISK_MESSAGE = "High risk detected. Please consult your doctor immediately."
MODERATE_RISK_MESSAGE = "Moderate risk detected. Monitor your condition closely."


def decide(score: int) -> AlertDecision | None:
    """Return the alert warranted by ``score``, or None."""
    if score > HIGH_RISK_THRESHOLD:
        return AlertDecision(severity=Severity.HIGH, message=HIGH_RISK_MESSAGE)
    if score > MODERATE_RISK_THRESHOLD:
        return AlertDecision(severity=Severity.MEDIUM, message=MODERATE_RISK_MESSAGE)
    return None


def should_suppress(decision: AlertDecision, unread_alerts: Iterable[Alert]) -> bool:
    """True when an unread alert of equal or higher severity already exists."""
    return any(
        not alert.is_read and alert.severity.rank >= decision.severity.rank
        for alert in unread_alerts
    )
