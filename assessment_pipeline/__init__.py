"""Textbook -> 400-question MCQ assessment pipeline (analysis + four part batches)."""

__version__ = "1.0.0"
