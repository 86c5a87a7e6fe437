"""Sys module: system services, reference data, sessions and diagnostics."""
