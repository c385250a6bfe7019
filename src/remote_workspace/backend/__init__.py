"""Workspace daemon backend: FastAPI app, WebSocket protocol, terminals."""
