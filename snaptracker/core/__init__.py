"""Core codecs."""
