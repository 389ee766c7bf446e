"""
Customer profile management.

Creating and editing a customer never touches balances. Deleting one
removes their ledger rows, so it goes through
``LedgerEngine.delete_customer`` instead of this module.
"""

from django.db import transaction

from apps.accounts.models import User, UserRole
from apps.loyalty.models import ActivityType

from .audit import LedgerEvent, record_activity

EDITABLE_FIELDS = ('email', 'full_name', 'phone', 'is_active')


def _profile(customer):
    return {
        'email': customer.email,
        'full_name': customer.full_name,
        'phone': customer.phone,
    }


@transaction.atomic
def create_customer(*, restaurant, email, full_name='', phone='', is_active=True,
                    performed_by=None, audit_sink=None):
    """
    Create a customer of ``restaurant``.

    Customers sign in only after a password is set for them, so the new
    account gets an unusable password.

    Returns:
        User: The new customer.
    """
    customer = User.objects.create_user(
        email=email,
        password=None,
        full_name=full_name,
        phone=phone,
        is_active=is_active,
        restaurant=restaurant,
        role=UserRole.CUSTOMER,
    )
    (audit_sink or record_activity)(LedgerEvent(
        action_type=ActivityType.CUSTOMER_CREATED,
        target_type='customer',
        target_id=str(customer.pk),
        before=None,
        after=None,
        restaurant_id=restaurant.pk,
        performed_by_id=getattr(performed_by, 'pk', None),
        details=_profile(customer),
    ))
    return customer


@transaction.atomic
def update_customer(*, customer, performed_by=None, audit_sink=None, **changes):
    """
    Update profile fields of a customer.

    Only ``EDITABLE_FIELDS`` may change; restaurant and role are fixed.

    Returns:
        User: The updated customer.
    """
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    diff = {
        name: [getattr(customer, name), value]
        for name, value in changes.items()
        if getattr(customer, name) != value
    }
    if not diff:
        return customer

    for name, (_, value) in diff.items():
        setattr(customer, name, value)
    customer.save(update_fields=list(diff))

    (audit_sink or record_activity)(LedgerEvent(
        action_type=ActivityType.CUSTOMER_UPDATED,
        target_type='customer',
        target_id=str(customer.pk),
        before=None,
        after=None,
        restaurant_id=customer.restaurant_id,
        performed_by_id=getattr(performed_by, 'pk', None),
        details={'changes': diff},
    ))
    return customer
