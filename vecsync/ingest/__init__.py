"""
Incremental indexing pipeline.

Subpackages:
- state: per-root snapshots of file fingerprints
- diff: scanning, change detection and the IndexOrchestrator
- chunking: AST-aware and line-window chunkers

Modules:
- alias: zero-downtime reindex by alias swap
- runtime: cancellation, retry policy and the per-root run lock
- progress: throttled progress reporting
"""
