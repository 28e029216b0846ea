"""drivescan: Google Drive scan jobs with a searchable file index."""

__version__ = "0.1.0"
