"""controlmark - compliance control marking and report generation."""

__version__ = "1.0.0"
