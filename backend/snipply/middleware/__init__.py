# Middleware package init
"""
Snipply Backend — Middleware Package
======================================

Middleware Chain (outermost first):
    Request → [Request ID] → [Access Log] → [Rate Limit] → [Session]
            → [GZip] → [CORS] → Route Handler

    - Request ID first so rate-limit rejections and access log lines carry it
    - Access log wraps the limiter so 429s are logged too
    - Session (Starlette SessionMiddleware) decodes the signed cookie into
      request.session for the auth dependencies
"""
