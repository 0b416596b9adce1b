"""Cohort Sync Package.

Keeps Microsoft Entra (Graph) groups and Keycloak groups ("cohorts") linked
through a persistent mapping table, then propagates group membership.

To run one reconciliation pass:
    from cohortsync.core.task import CohortSyncTask

To use the admin API:
    from cohortsync.flask_app import create_app
"""
# Note: We don't import flask_app by default to avoid Flask dependency
# for the scheduled task and CLI, which only use cohortsync.core

__version__ = "0.1.0"
