"""
Database utilities, migrations, and seeding.

Runtime DB access lives in `services/api`. This package is for repo-level DB operations:
- Alembic migrations config
- Deterministic listing seed generator
"""
