"""Face-alignment viewfinder with shape-masked still capture."""

__version__ = "0.1.0"
