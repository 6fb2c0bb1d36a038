"""Charterbook: booking lifecycle and availability engine for charter captains."""

__version__ = "0.1.0"
