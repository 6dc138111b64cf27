"""Notebook fan control building blocks: JSON, option parsing, configuration and temperature logic."""

__version__ = "0.2.8"