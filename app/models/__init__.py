# Importing every model registers it on Base.metadata (create_all / alembic).
from app.models.account import Account
from app.models.auth_session import AuthSession
from app.models.listing import Listing
from app.models.claim import Claim
from app.models.signup_attempt import SignupAttempt
from app.models.audit_log import AuditLog
