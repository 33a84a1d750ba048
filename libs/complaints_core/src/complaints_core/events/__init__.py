"""Event payload contracts published by the complaint service."""
