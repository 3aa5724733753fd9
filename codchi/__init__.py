"""Paths, locked configuration files, machine settings and Nix log progress for codchi."""

__version__ = "0.1.0"

__all__ = ["__version__"]