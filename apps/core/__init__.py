"""
Core app - Shared abstractions and utilities.

This app provides platform-agnostic pieces used by the domain apps:
- Task execution (TaskService)
- Pagination and field-name transforms for API payloads
- Image uploads to local or S3 storage
"""
