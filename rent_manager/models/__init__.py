from rent_manager.models.account import Admin, Agent, Client, Tenant
from rent_manager.models.active_session import ActiveSession
from rent_manager.models.audit_log import AuditLog
from rent_manager.models.login_attempt import LockHistory, LoginAttempt
from rent_manager.models.otp_request import OtpRequest
from rent_manager.models.password_reset_attempt import PasswordResetAttempt
from rent_manager.models.reactivation_request import AccountReactivationRequest
