"""Base module: entity bases, persistence, mapping, settings and diagnostics."""
