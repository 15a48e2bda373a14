"""Polya Tutor backend.

Resilient Gemini request routing and a four-stage Polya tutoring dialogue.
"""

__version__ = "0.1.0"
