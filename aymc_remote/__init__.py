"""AYMC Remote - SSH administration client for AYMC hosts."""

__version__ = "0.1.0"
