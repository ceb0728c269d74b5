"""
QuantSignal Services

Service layer containing all calculation and scheduling logic.
Each service has a defined contract and implementation.
"""

from quantsignal.services.base import BaseService, ServiceError

__all__ = ["BaseService", "ServiceError"]
