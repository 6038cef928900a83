"""Asynchronous AI job subsystem: admission, queue, workers and polling."""
