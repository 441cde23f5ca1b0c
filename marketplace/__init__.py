"""Job marketplace notification dispatch, matching and reminder sweeps."""

__version__ = "0.1.0"
