"""reelindex: search index and read cache propagation for a content catalog."""

__version__ = "0.1.0"
