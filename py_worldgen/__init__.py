"""
py_worldgen - procedural generation of connected place graphs.

Fractal branch growth, ecosystem bands and graph connectivity repair,
producing a navigable world of places linked by directional exits.
"""

__version__ = "0.1.0"
