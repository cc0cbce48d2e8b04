"""
Remote image store integration.

Responsibilities:
- Talk to the remote asset store (upload, update, delete, list, download).
- Link remote images to meat cuts that lack one, by name heuristics.
- Batch-upload local image files with bounded concurrency.
"""
