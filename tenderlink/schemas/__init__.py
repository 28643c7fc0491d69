"""
schemas/ — Pydantic request/response models for the tenderlink API

Provides input validation, auto-generated OpenAPI docs, and
consistent error messages across all endpoints.
"""
