"""
TaskVault backend package.

Multi-user task tracking over HTTP/JSON: cookie-carried signed identity
tokens, owner-scoped task storage and AES-GCM encrypted task descriptions.
The FastAPI application factory lives in ``taskvault.main``.
"""

__version__ = "0.1.0"
