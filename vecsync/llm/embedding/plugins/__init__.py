"""Embedding plugins, discovered by vecsync.llm.embedding.registry."""
