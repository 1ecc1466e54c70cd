# src/atlas_release/core/trigger/__init__.py
"""
Triggers do Atlas Release: schedules cron e disparo manual.

Componentes:
    - cron      → parse e busca de disparos de expressões cron (UTC)
    - evaluator → TriggerEvaluator + TriggerState (último slot por trigger)
"""

from .cron import CronSchedule
from .evaluator import TriggerEvaluator, TriggerState

__all__ = ["CronSchedule", "TriggerEvaluator", "TriggerState"]
