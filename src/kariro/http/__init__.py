"""Outbound HTTP fetching with SSRF protection."""
