"""Core modules for dashsync."""
