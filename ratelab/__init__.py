"""ratelab: side-by-side admission control with four rate limiting algorithms."""

__version__ = "0.1.0"
