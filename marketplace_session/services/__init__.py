"""Service layer exports."""

from .auth_events import AuthEventBus, Subscription
from .auth_service import AuthService, SignInResult
from .device_identity import DeviceIdentity
from .device_registrar import DeviceRegistrar, RegistrationResult
from .logout import DeactivationResult, LogoutDeactivator
from .permission import PushPermissionGate
from .push_pipeline import PipelineOutcome, PushRegistrationPipeline
from .refresh import RefreshCoordinator
from .registration_cache import RegistrationCache
from .registration_state import RegistrationStateMachine
from .token_cipher import TokenCipher
from .token_rotation import TokenRotationListener
from .token_store import TokenStore

__all__ = [
    "AuthEventBus",
    "AuthService",
    "DeactivationResult",
    "DeviceIdentity",
    "DeviceRegistrar",
    "LogoutDeactivator",
    "PipelineOutcome",
    "PushPermissionGate",
    "PushRegistrationPipeline",
    "RefreshCoordinator",
    "RegistrationCache",
    "RegistrationResult",
    "RegistrationStateMachine",
    "SignInResult",
    "Subscription",
    "TokenCipher",
    "TokenRotationListener",
    "TokenStore",
]
