"""Business logic layer for sharing app.

- Share link engine: issue, resolve, revoke, list, purge
- Public access gateway: read-only expansion of a shared subtree
"""
