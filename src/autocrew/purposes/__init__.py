"""Purposes — the catalogue of project types the crew can build."""

from .builtin import builtin_purposes
from .models import Purpose
from .registry import PurposeRegistry

__all__ = ["Purpose", "PurposeRegistry", "builtin_purposes"]
