"""Health risk evaluation and alerting for remote patient monitoring.

This package contains the risk model, alert policy and evaluation engine,
together with the domain models they operate on. Storage lives behind
protocols so the engine can be exercised without a database.
"""
