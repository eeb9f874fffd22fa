# darkroom package initialization
"""Scene-referred color and tone pipeline for photographs."""

__version__ = "0.1.0"
