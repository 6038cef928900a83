"""Asynchronous AI job subsystem for job-application tracking."""

__version__ = "0.4.0"
