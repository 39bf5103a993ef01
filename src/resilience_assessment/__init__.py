"""Resilience Assessment service.

Scores Likert-scale resilience self-assessments across areas and sub-areas,
resolves configurable levels and conditional feedback, and decides which
session an access code may resume, view, or retake.
"""

__version__ = "0.1.0"
