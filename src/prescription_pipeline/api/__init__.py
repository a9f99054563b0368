# src/prescription_pipeline/api/__init__.py
"""
HTTP surface for the prescription pipeline
"""

from .main import create_app, build_orchestrator

__all__ = ["create_app", "build_orchestrator"]
