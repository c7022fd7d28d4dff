"""Shared libraries for the inference message service.

Subpackages:
- ``hnn.common``: configuration, logging, request context, metrics, and tracing.
- ``hnn.inference``: tensor codec, engine transport, model lifecycle, and the
  orchestrator that ties them together.
- ``hnn.storage``: metadata and message store abstractions with concrete backends.

Notes:
- Keep HTTP concerns out of here; the service layer lives in ``service-message``.
"""
