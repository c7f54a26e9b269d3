from minihms.config import MiniHmsConfig, RuntimeSettings, SecurityConfig
from minihms.errors import (
    ConfigWriteError,
    MiniHmsError,
    NotFoundError,
    PreconditionError,
    SignalError,
    SpawnError,
    StartTimeoutError,
)
from minihms.mini_hms import MiniHms
from minihms.protocols import HmsState, HmsStatus, HostPort, SaslProtection

__all__ = [
    "ConfigWriteError",
    "HmsState",
    "HmsStatus",
    "HostPort",
    "MiniHms",
    "MiniHmsConfig",
    "MiniHmsError",
    "NotFoundError",
    "PreconditionError",
    "RuntimeSettings",
    "SaslProtection",
    "SecurityConfig",
    "SignalError",
    "SpawnError",
    "StartTimeoutError",
]
