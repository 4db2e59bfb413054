"""Application layer for the messaging bounded context."""
