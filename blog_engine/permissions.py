"""
Capability checks shared by posts and comments.

Every ownership or role decision goes through ``can`` so post and comment
rules cannot drift apart.
"""
from .exceptions import AuthenticationRequired, PermissionDenied

OWNER_ACTIONS = {"update", "delete"}
ADMIN_ACTIONS = {"moderate", "view_all"}
MEMBER_ACTIONS = {"create", "like", "comment", "upload"}


def is_authenticated(actor):
    return actor is not None and getattr(actor, "is_authenticated", False)


def is_admin(actor):
    """Staff and superusers act as administrators."""
    if not is_authenticated(actor):
        return False
    return bool(actor.is_staff or actor.is_superuser)


def is_owner(actor, resource):
    if not is_authenticated(actor) or resource is None:
        return False
    return resource.author_id == actor.pk


def can(actor, resource, action):
    """
    Return whether ``actor`` may perform ``action`` on ``resource``.

    ``resource`` may be None for actions that are not tied to a record
    (creating a post, uploading an image, listing every status).
    """
    if action == "view":
        if getattr(resource, "is_published", False):
            return True
        return is_owner(actor, resource) or is_admin(actor)

    if action in MEMBER_ACTIONS:
        return is_authenticated(actor)

    if action in OWNER_ACTIONS:
        return is_owner(actor, resource) or is_admin(actor)

    if action in ADMIN_ACTIONS:
        return is_admin(actor)

    raise ValueError(f"Unknown action: {action}")


def ensure_can(actor, resource, action):
    """Raise unless ``can`` allows the action."""
    if can(actor, resource, action):
        return
    if not is_authenticated(actor) and action != "view":
        raise AuthenticationRequired()
    raise PermissionDenied()
