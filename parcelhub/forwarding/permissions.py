"""
Custom permissions for the forwarding engine API.
"""

from rest_framework.permissions import BasePermission

WAREHOUSE_STAFF_GROUP = 'warehouse_staff'


def is_warehouse_staff(user) -> bool:
    if not user or not user.is_authenticated:
        return False
    if user.is_staff:
        return True
    return user.groups.filter(name=WAREHOUSE_STAFF_GROUP).exists()


def customer_scope(request):
    """
    Customer id to restrict queries to, or None for warehouse staff.

    Customers are identified by their user primary key.
    """
    if is_warehouse_staff(request.user):
        return None
    return str(request.user.pk)


def actor_name(request) -> str:
    user = request.user
    if user and user.is_authenticated:
        return user.get_username()
    return ''


class IsWarehouseStaff(BasePermission):
    """
    Permission that allows access only to warehouse staff users.

    Checks if user is staff or belongs to 'warehouse_staff' group.
    """

    def has_permission(self, request, view):
        return is_warehouse_staff(request.user)


class IsOwnerOrWarehouseStaff(BasePermission):
    """
    Allows customers to reach their own records and staff to reach all.

    List querysets are scoped by the views; this guards single objects.
    """

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        if is_warehouse_staff(request.user):
            return True
        return getattr(obj, 'customer_id', None) == str(request.user.pk)
