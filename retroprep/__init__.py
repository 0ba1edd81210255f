"""RetroPrep: batch conversion helpers for a home media/emulation library."""

__version__ = "0.3.0"
