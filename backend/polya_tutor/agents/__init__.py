"""Polya Tutor - LangGraph agents package."""
