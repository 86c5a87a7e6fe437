"""Modular backend: module discovery, dependency injection and the Base and Sys modules."""
