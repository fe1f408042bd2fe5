"""Cross-cutting operation context for services and the provisioning engine."""

from .operation_context import OperationContext, OperationHandler, operation

__all__ = ["OperationContext", "OperationHandler", "operation"]
