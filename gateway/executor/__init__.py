"""
Inference Gateway Executors

One executor per operation: chat completion (streaming and batch),
embeddings and image generation.
"""
