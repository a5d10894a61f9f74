"""finboard: CSV ingestion, normalization and classification for the
financial dashboard.

Pipeline modules are imported directly (``finboard.transactions``,
``finboard.chunks``, ...); this package module stays import-light.
"""

__version__ = "0.1.0"
