"""Insighter Server - FastAPI-based multi-tenant REST API."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("insighter-server")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
