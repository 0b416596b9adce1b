"""Core Business Logic Module

Reconciliation of directory groups with local cohorts, independent of HTTP
frameworks.

Module Structure:
    - models.py          : ExternalGroup, LocalGroup, Mapping, RunResult
    - interfaces.py      : Collaborator contracts (directory, cohorts, mappings, membership)
    - reconciliation.py  : ReconciliationEngine and matching helpers
    - mapping_store.py   : JSON-file mapping table
    - membership.py      : Graph → Keycloak membership synchronizer
    - task.py            : Scheduled task wiring and run lock
    - graph/             : Microsoft Graph client and group directory
    - keycloak/          : Keycloak Admin API client and cohort store

Usage Pattern:
    Import explicitly when needed:
        from cohortsync.core.reconciliation import ReconciliationEngine
        from cohortsync.core.task import CohortSyncTask
"""
