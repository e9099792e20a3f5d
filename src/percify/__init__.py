"""Percify Avatar Co-Pilot: a chat assistant with a persistent avatar and memory."""

__version__ = "0.1.0"
