"""HTTP surface for discovery, content writes and index administration."""
