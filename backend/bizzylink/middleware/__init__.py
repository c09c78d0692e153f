# Middleware package init
"""
BizzyLink Backend: Middleware Package
======================================

Middleware Chain:
    Request → [Rate Limit] → [Request ID] → [Logging] → [CORS] → Route Handler

    1. Rate limit first, so abusive clients are rejected before any work
    2. Request ID, so every later log line can carry it
    3. Access logging, which records status and duration on the way out
"""
