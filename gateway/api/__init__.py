"""
Inference Gateway - API Layer

OpenAI-compatible HTTP surface:
- Chat completions (streaming and non-streaming)
- Embeddings
- Image generation
- Model listing
"""

from .middleware import CredentialsMiddleware
from .routes import (
    chat_router,
    embeddings_router,
    images_router,
    models_router,
)

__all__ = [
    "CredentialsMiddleware",
    "chat_router",
    "embeddings_router",
    "images_router",
    "models_router",
]
