"""
Run Logging Module

Provides per-run execution logging for workflow runs.
"""
from automation.logging.run_logger import RunLogger, get_run_logger, release_run_logger

__all__ = ['RunLogger', 'get_run_logger', 'release_run_logger']
