"""Model providers used by vecsync (embeddings)."""
