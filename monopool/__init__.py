"""Stratum mining pool server for a single proof-of-work coin, with Redis share storage."""

__version__ = "0.1.0"