"""File-backed collaborator implementations for local use and tests."""

from carbon_workflow.storage.document_store import DocumentNotFound, JsonDocumentStore
from carbon_workflow.storage.jsonfile import StateFileError
from carbon_workflow.storage.status_store import JsonProjectStatusStore

__all__ = ["DocumentNotFound", "JsonDocumentStore", "JsonProjectStatusStore", "StateFileError"]
