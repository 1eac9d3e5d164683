"""
Custom permission classes for the book swap API.
"""

from rest_framework import permissions


class IsSwapParticipant(permissions.BasePermission):
    """
    Object-level permission allowing only the requester or the owner of a
    swap request to see it.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsSwapParticipant]

            def get(self, request, pk):
                swap = ...
                self.check_object_permissions(request, swap)
    """

    message = 'You do not have permission to view this swap request.'

    def has_object_permission(self, request, view, obj):
        """
        Check that the authenticated user is one of the two parties.

        Args:
            request: HTTP request object
            view: View being accessed
            obj: SwapRequest instance

        Returns:
            bool: True if user is requester or owner
        """
        if not request.user or not request.user.is_authenticated:
            return False
        return obj.is_participant(request.user)
