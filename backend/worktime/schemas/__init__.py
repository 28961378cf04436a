"""
Pydantic schemas for data layer records and API request/response validation.

Provides data models for organizations, users, projects and tasks, time
logs, approvals and screenshot metadata.
"""
