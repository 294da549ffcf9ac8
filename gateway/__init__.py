"""
Inference Gateway

A single API surface for chat completions, embeddings and image generation
across several upstream model providers, with a uniform telemetry event
stream regardless of which provider served the request.
"""

__version__ = "0.1.0"
