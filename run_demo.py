"""
End-to-end walkthrough of the evaluation pipeline.

This script exercises:
1. Configuration loading
2. Vitals submission, scoring and alerting against the relational store
3. Alert acknowledgement and the patient dashboard views
4. Failure handling with a simulated storage outage

Run with: uv run python run_demo.py
"""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.memory.store import InMemoryHealthStore
from riskwatch.bootstrap import Portal, build_portal, portal_session
from riskwatch.config import get_config
from riskwatch.domain.models import SubmissionReceipt
from riskwatch.services.context import PatientContext

console = Console()


def _vitals(bp: str, hr: float, sugar: float, oxygen: float) -> dict[str, object]:
    return {"blood_pressure": bp, "heart_rate": hr, "blood_sugar": sugar, "oxygen_level": oxygen}


SCENARIOS = [
    ("normal", _vitals("118/76", 72, 95, 98)),
    ("borderline", _vitals("135/88", 95, 125, 96)),
    ("moderate", _vitals("145/92", 105, 110, 96)),
    ("critical", _vitals("160/100", 45, 150, 90)),
]


def _receipt_row(table: Table, name: str, receipt: SubmissionReceipt) -> None:
    evaluation = receipt.evaluation
    if evaluation is None:
        table.add_row(name, "-", "-", f"evaluation failed: {receipt.evaluation_error}")
        return
    severity = evaluation.severity.value if evaluation.severity else "-"
    status = "raised" if evaluation.alert_raised else (evaluation.alert_error or "none")
    table.add_row(name, str(evaluation.score), severity, status)


async def _patient(portal: Portal, user_id: int) -> PatientContext:
    context = (await portal.context_for(user_id, "patient")).unwrap()
    assert isinstance(context, PatientContext)
    return context


async def demo_submissions() -> bool:
    """Submit a series of readings through the relational store."""

    console.print(Panel("Vitals submission and risk evaluation", style="blue"))
    config = get_config()

    async with portal_session(config) as portal:
        registered = await portal.store.register_patient(1001)  # type: ignore[attr-defined]
        registered.unwrap()
        patient = await _patient(portal, 1001)

        table = Table(title="Evaluations")
        table.add_column("Scenario", style="cyan")
        table.add_column("Score", style="white")
        table.add_column("Severity", style="yellow")
        table.add_column("Alert", style="white")

        for name, payload in SCENARIOS:
            result = await portal.submissions.submit(patient, payload)
            if result.is_err():
                console.print(f"Submission rejected: {result.unwrap_err()}", style="red")
                return False
            _receipt_row(table, name, result.unwrap())

        console.print(table)

        alerts = (await portal.dashboard.alerts(patient)).unwrap()
        if alerts:
            await portal.acknowledgements.mark_read(patient, alerts[0].id)

        score = (await portal.dashboard.current_risk_score(patient)).unwrap()
        alerts = (await portal.dashboard.alerts(patient)).unwrap()
        points = (await portal.dashboard.total_points(patient)).unwrap()
        trend = (await portal.dashboard.vitals_trend(patient)).unwrap()

        summary = Table(title="Dashboard")
        summary.add_column("View", style="cyan")
        summary.add_column("Value", style="white")
        summary.add_row("Current risk score", str(score))
        summary.add_row("Alerts (unread)", f"{len(alerts)} ({sum(not a.is_read for a in alerts)})")
        summary.add_row("Total points", str(points))
        summary.add_row("Trend length", str(len(trend)))
        console.print(summary)

    return True


async def demo_outage() -> bool:
    """Show that an alert-store outage never loses the committed score."""

    console.print(Panel("Failure handling", style="blue"))

    store = InMemoryHealthStore()
    portal = build_portal(store, get_config())
    store.register_patient(2002, patient_id=2002)
    patient = await _patient(portal, 2002)

    store.simulate_outage("append_alert")
    receipt = (await portal.submissions.submit(patient, SCENARIOS[-1][1])).unwrap()

    table = Table(title="Alert store outage")
    table.add_column("Scenario", style="cyan")
    table.add_column("Score", style="white")
    table.add_column("Severity", style="yellow")
    table.add_column("Alert", style="white")
    _receipt_row(table, "critical (alert store down)", receipt)
    console.print(table)

    persisted = len(store.risk_scores(2002)) == 1 and not store.alerts(2002)
    style = "green" if persisted else "red"
    console.print(f"Score persisted without alert: {persisted}", style=style)
    return persisted


async def run_demo() -> None:
    results = [("Submissions", await demo_submissions()), ("Outage", await demo_outage())]

    summary = Table(title="Demo results")
    summary.add_column("Step", style="cyan")
    summary.add_column("Result", style="white")
    for name, ok in results:
        summary.add_row(name, "PASSED" if ok else "FAILED")
    console.print(summary)


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        console.print("\nDemo stopped by user", style="yellow")
