"""
Production order permissions.
"""
from rest_framework import permissions


class IsProductionOrderParticipant(permissions.BasePermission):
    """
    Permission: User must be the customer or provider of the order (or staff).
    """
    def has_object_permission(self, request, view, obj):
        return obj.is_participant(request.user) or request.user.is_staff
