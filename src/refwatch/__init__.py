"""refwatch: turn git ref updates into commit notifications."""

__version__ = "0.3.0"
