# ============================================================================
# src/prescription_pipeline/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .base_config import base_settings, BaseSettingsConfig
from .llm_config import llm_settings, LLMSettings
from .calendar_config import calendar_settings, CalendarSettings
from .pipeline_config import pipeline_settings, PipelineSettings
from .logging_config import logging_settings, LoggingSettings
