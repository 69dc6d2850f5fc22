"""Rate limiting adapters.

This package provides the sliding-window limiter guarding the contact form
and the two stores it runs on: Redis (shared across instances) and an
in-memory fallback used while Redis is unreachable.
"""
