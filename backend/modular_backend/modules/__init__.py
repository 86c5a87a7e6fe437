"""Module packages.

Every subpackage is a module; it is discovered, ordered by its imports and
initialised at startup.
"""
