"""Configuration module for cohort sync."""
from .settings import SyncConfig, load_settings

__all__ = ["SyncConfig", "load_settings"]
