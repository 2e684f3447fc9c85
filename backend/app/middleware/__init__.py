"""
Health Metrics Tracker Backend — Middleware Package
=====================================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route Handler

    1. Request ID first: every later log line and error envelope carries it
    2. Logging: records status and duration, including 429 rejections
    3. Rate Limit: rejects over-limit clients before any database work
"""
