#!/usr/bin/env python3
"""
Service layer exceptions.

NotFound and InvalidTransition are surfaced to the caller as rejected
operations; ValidationException is raised before any state is touched.
"""


class ServiceException(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundException(ServiceException):
    """Raised when a volunteer, event, assignment or history record is absent."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found: {identifier}")


class InvalidTransitionException(ServiceException):
    """Raised when an operation is not allowed from the current state."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ValidationException(ServiceException):
    """Raised when input is malformed (bad enum, rating, hours, skill list)."""
    pass
