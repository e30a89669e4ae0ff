# Schemas package init
"""
Snipply Backend — Pydantic API Schemas
=======================================

Request bodies and response payloads. All models serialize with camelCase
keys (`isPublic`, `displayName`) and accept snake_case on input as well.
"""
