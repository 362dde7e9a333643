from django.utils import timezone

from .models import Asset, Comment, Playlist, User, UserSession


def get_bearer_token(request):
    auth_header = request.META.get('HTTP_AUTHORIZATION', '')
    if not auth_header.startswith('Bearer '):
        return None
    access_token = auth_header.split(' ', 1)[1].strip()
    return access_token or None


def get_active_session(request):
    access_token = get_bearer_token(request)
    if not access_token:
        return None
    session = (
        UserSession.objects.select_related('user')
        .filter(access_token=access_token, revoked_at__isnull=True)
        .first()
    )
    if session is None or session.access_expires_at <= timezone.now():
        return None
    user = session.user
    if user.status != User.Status.ACTIVE or user.deleted_at is not None:
        return None
    return session


def current_user(request):
    cached = getattr(request, '_alonetone_user', False)
    if cached is not False:
        return cached
    session = get_active_session(request)
    user = session.user if session else None
    request._alonetone_user = user
    return user


def can_moderate(actor) -> bool:
    if actor is None:
        return False
    if actor.status != User.Status.ACTIVE or actor.deleted_at is not None:
        return False
    return actor.role in (User.Role.MODERATOR, User.Role.ADMIN)


def _owner_id(resource):
    if isinstance(resource, User):
        return resource.id
    if isinstance(resource, (Asset, Playlist)):
        return resource.user_id
    if isinstance(resource, Comment):
        return resource.user_id
    raise TypeError(f'Unsupported resource type: {type(resource).__name__}')


def can_edit(actor, resource) -> bool:
    if actor is None:
        return False
    if can_moderate(actor):
        return True
    if actor.is_spam or actor.deleted_at is not None:
        return False
    return _owner_id(resource) == actor.id
