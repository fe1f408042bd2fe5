"""Hosting-account provisioning: saga runner, allocator, host accounts and the engine."""

from .login_names import derive_login_name, home_directory_for
from .os_accounts import (
    DisabledOSAccountGateway,
    OSAccountGateway,
    SystemOSAccountGateway,
    build_os_gateway,
)
from .provisioning_service import ProvisioningEngine
from .saga import Saga, SagaStep
from .sequence import SequenceAllocator

__all__ = [
    "DisabledOSAccountGateway",
    "OSAccountGateway",
    "ProvisioningEngine",
    "Saga",
    "SagaStep",
    "SequenceAllocator",
    "SystemOSAccountGateway",
    "build_os_gateway",
    "derive_login_name",
    "home_directory_for",
]
