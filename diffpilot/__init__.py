"""diffpilot - chat front-end for a staged analyze/preview/apply code workflow."""

__version__ = "0.1.0"
