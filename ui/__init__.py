"""User-facing interfaces of the responder (HTTP API)."""
