"""Service layer for the LocalNotes store."""
