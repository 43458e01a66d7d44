"""Backs up Vercel project environment variables across the personal account and every team."""

from __future__ import annotations

from .config import BackupConfig, load_config  # noqa: F401
from .orchestrator import BackupOrchestrator  # noqa: F401

__version__ = "0.1.0"
