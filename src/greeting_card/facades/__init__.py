"""
Facade modules for external service integrations.

Each facade wraps direct calls to an external HTTP API, providing a stable
internal interface that can be swapped without touching the generation
clients.

Facades:
  - backend.py — wraps the greeting-card backend's JSON endpoints
"""
