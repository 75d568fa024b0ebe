"""Carbon credit project verification workflow.

Provides:
- the project status lifecycle with document-gated transitions
- an append-only status history per project
- configuration loaded from `.env`
- structured logging
- a CLI and a REST API over local JSON persistence
"""

__version__ = "0.1.0"

from carbon_workflow.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]
