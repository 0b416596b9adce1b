"""Operational scripts: audit trail and the cohort sync CLI."""
