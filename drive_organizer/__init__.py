"""Rename and file Google Drive documents into category folders using Gemini."""

__version__ = "0.3.0"
