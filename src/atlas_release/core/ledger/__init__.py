# src/atlas_release/core/ledger/__init__.py
"""
Run Ledger do Atlas Release: registro imutável de Runs terminais.
"""

from .ledger import RunLedger

__all__ = ["RunLedger"]
