"""Passive subdomain discovery from online sources, with optional DNS wildcard removal."""

__version__ = "2.5.4"