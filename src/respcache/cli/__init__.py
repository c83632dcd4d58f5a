"""Command-line interface for inspecting and maintaining a cache store."""
