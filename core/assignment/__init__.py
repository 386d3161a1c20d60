from core.assignment.service import AssignmentService

__all__ = ['AssignmentService']
