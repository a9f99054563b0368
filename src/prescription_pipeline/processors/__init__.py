# src/prescription_pipeline/processors/__init__.py
"""
Processors Module

Pure and AI-backed transformations applied to a prescription:
- Manual review flags (FlagEngine)
- Reminder schedule (ScheduleBuilder)
- Safety profile (SafetyAnalyzer)
- Checklist and summary card
"""

from .flag_engine import FlagEngine
from .schedule_builder import ScheduleBuilder
from .safety_analyzer import SafetyAnalyzer
from .summary import build_checklist, export_summary_card

__all__ = [
    "FlagEngine",
    "ScheduleBuilder",
    "SafetyAnalyzer",
    "build_checklist",
    "export_summary_card",
]
