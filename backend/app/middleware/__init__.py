# Middleware package init
"""
DoggyClub Backend — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Rate Limit] → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Rate Limit FIRST: reject abusive clients before any processing
    2. Request ID: correlation ID for logs and error bodies
    3. Logging: access line with status and duration

    Responses travel back through the chain in reverse, which is when the
    request ID header is attached and the duration is measured.
"""
