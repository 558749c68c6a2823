"""Data models for the LocalNotes store."""
