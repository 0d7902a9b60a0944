"""
Role-based permission classes for the WorkHub API.
"""
from rest_framework import permissions

from .exceptions import WorkflowError
from .identity import authorize


class HasRole(permissions.BasePermission):
    role = None

    def has_permission(self, request, view):
        try:
            authorize(request.user, self.role, message=self.message)
        except WorkflowError:
            return False
        return True


class IsClient(HasRole):
    """Allows access only to users registered as clients."""

    role = 'client'
    message = 'Only clients can perform this action.'


class IsFreelancer(HasRole):
    """Allows access only to users registered as freelancers."""

    role = 'freelancer'
    message = 'Only freelancers can perform this action.'


class IsAdminRole(HasRole):
    role = 'admin'
    message = 'Admin privileges required.'
