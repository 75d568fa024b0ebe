"""FastAPI server adapter for carbon-verification-workflow.

Design intent:
- Keep business logic in `carbon_workflow.workflow.*`
- Keep server-specific concerns (routing, CORS, HTTP status mapping) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from carbon_workflow.server.app import create_app
