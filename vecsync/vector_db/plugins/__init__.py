"""Vector store plugins, discovered by vecsync.vector_db.registry."""
