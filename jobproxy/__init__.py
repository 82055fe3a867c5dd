"""Caching proxy for the CEIPAL job-posting API."""

__version__ = "0.1.0"
