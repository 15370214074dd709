from functools import wraps
import logging

from flask import g
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from invoicely.billing.state_machine import SubscriptionStateMachine

logger = logging.getLogger(__name__)


def current_tenant_id():
    return g.get("tenant_id")


def current_tenant_email():
    return g.get("tenant_email")


def tenant_required(fn):
    """
    Require a valid bearer token issued by the auth provider.

    The token subject is the tenant id. The tenant's Free subscription is
    created here on first access so every protected handler can rely on a
    subscription row existing.
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        g.tenant_id = str(get_jwt_identity())
        g.tenant_email = get_jwt().get("email")
        SubscriptionStateMachine.ensure_default_subscription(g.tenant_id)
        return fn(*args, **kwargs)

    return wrapper
