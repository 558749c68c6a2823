"""Command layer exposing the LocalNotes storage API."""
