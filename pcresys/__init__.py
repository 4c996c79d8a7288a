# pcresys/__init__.py
"""pcresys - locate a system libpcre or build the bundled copy for the host build."""

__version__ = "0.2.0"
