"""Kernel utilities shared across the order core.

Rules:
- Kernel code must not import from orders/jobs/db modules.
- Kernel utilities should stay small and stable; avoid business logic here.
"""
