"""
Registrations Module

Handles the student admission registration workflow:
1. Multi-step Draft editing (personal, parent and academic data)
2. Document uploads checked against the required checklist
3. Submission and admin decisions through a single state machine
4. Registration numbers from an atomic per-year counter
5. Post-commit email/SMS notifications and draft reminders

API Endpoints:
- /registration/* - Public applicant flow
- /admin/registrations, /admin/dashboard, /admin/send-reminders - Admin review

Background Jobs (via APScheduler):
- send_draft_reminders: Runs daily, reminds stale Drafts once
"""

from .admin_router import router as admin_router
from .jobs import register_registration_jobs
from .router import router

__all__ = ["router", "admin_router", "register_registration_jobs"]
