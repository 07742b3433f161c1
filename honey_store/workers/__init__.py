"""Background workers."""
from .reconciliation_worker import run_reconciliation_loop

__all__ = ["run_reconciliation_loop"]
