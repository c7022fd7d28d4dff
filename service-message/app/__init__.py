"""Message service package.

Layout:
- ``api``: REST endpoints for chat inference, message history, and model
  deletion.
- ``main``: application factory, lifespan wiring, health and metrics.
"""
