"""Command-line client for the Shipyard build and Enrober deployment APIs.

The command surface is implemented with Typer and Rich for better help and
error ergonomics, while response payloads are printed as json, yaml, raw text
or aligned tables.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
