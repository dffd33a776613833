"""
Nephra Backend Application Package

FastAPI backend for reviewing project applications and tracking the
progress of approved ones:

- main.py: FastAPI application and router wiring
- review/: progress codec, note ledger, title resolution and state machine
- services/review_service.py: review workflow orchestration
- stores/: Supabase and SQLAlchemy access to the request tables
"""

__version__ = "1.0.0"
