"""Authorization decorators for actor-kind access control."""
from functools import wraps

from flask import current_app, request
from flask_login import current_user, login_required

from utils.errors import ActionForbidden


def actor_required(*kinds, message: str = "Access denied"):
    """Allow only authenticated actors whose ``actor_kind`` is in ``kinds``."""
    allowed = set(kinds)

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            if getattr(current_user, "actor_kind", None) in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized actor access attempt",
                extra={"actor": current_user.get_id(), "path": request.path, "method": request.method},
            )
            raise ActionForbidden(message)

        return wrapped

    return decorator
