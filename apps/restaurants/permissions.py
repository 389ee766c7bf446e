"""
Custom permission classes shared by the restaurants and loyalty apps.

Every loyalty record is scoped to a restaurant; a user only ever sees
records of the restaurant they belong to.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS


class IsRestaurantMember(BasePermission):
    """
    Permission to check the user belongs to a restaurant.

    Object-level check compares the object's restaurant with the user's.
    """

    message = 'You must belong to a restaurant to use the loyalty program.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.restaurant_id)

    def has_object_permission(self, request, view, obj):
        restaurant_id = getattr(obj, 'restaurant_id', None)
        if restaurant_id is None:
            # obj is the Restaurant itself
            restaurant_id = obj.pk
        return restaurant_id == request.user.restaurant_id


class IsRestaurantAdmin(IsRestaurantMember):
    """Permission for restaurant administrators (staff-facing actions)."""

    message = 'Only restaurant administrators can perform this action.'

    def has_permission(self, request, view):
        return super().has_permission(request, view) and request.user.is_restaurant_admin


class IsRestaurantAdminOrReadOnly(IsRestaurantMember):
    """
    Members may read, administrators may write.

    Usage:
        class RewardViewSet(viewsets.ModelViewSet):
            permission_classes = [IsAuthenticated, IsRestaurantAdminOrReadOnly]
    """

    message = 'Only restaurant administrators can modify this resource.'

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in SAFE_METHODS:
            return True
        return request.user.is_restaurant_admin
