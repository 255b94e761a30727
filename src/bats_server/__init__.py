"""Resume keyword embedding and ATS scoring."""

__version__ = "0.1.0"
