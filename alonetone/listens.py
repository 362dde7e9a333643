import logging

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from .audit import get_client_ip
from .authorization import current_user
from .models import Asset, Listen

logger = logging.getLogger(__name__)

DIRECT_HIT = 'direct hit'
DEFAULT_BOT_USER_AGENTS = ('bot', 'spider', 'crawl', 'slurp', 'nutch', 'baidu')


def _bot_signatures():
    configured = getattr(settings, 'LISTEN_BOT_USER_AGENTS', None) or DEFAULT_BOT_USER_AGENTS
    return [signature.strip().lower() for signature in configured if signature.strip()]


def is_bot(user_agent) -> bool:
    agent = (user_agent or '').strip().lower()
    if not agent:
        return True
    return any(signature in agent for signature in _bot_signatures())


def resolve_source(request) -> str:
    override = (request.GET.get('referer') or '').strip()
    if override:
        return override
    referrer = (request.META.get('HTTP_REFERER') or '').strip()
    if referrer:
        return referrer
    return DIRECT_HIT


def listened_recently(asset, ip) -> bool:
    window = timezone.timedelta(minutes=getattr(settings, 'LISTEN_DEDUP_WINDOW_MINUTES', 5))
    return (
        Listen.objects.visible()
        .filter(asset=asset, ip=ip, created_at__gt=timezone.now() - window)
        .exists()
    )


def record_listen(request, asset):
    """Count a play of ``asset`` unless it comes from a bot or a recent repeat.

    Returns the new Listen, or None when nothing was recorded. Storage errors
    are logged and never raised.
    """
    user_agent = request.META.get('HTTP_USER_AGENT', '')
    if is_bot(user_agent):
        return None

    ip = get_client_ip(request)
    try:
        with transaction.atomic():
            if listened_recently(asset, ip):
                return None
            listen = Listen.objects.create(
                asset=asset,
                track_owner_id=asset.user_id,
                listener=current_user(request),
                ip=ip,
                user_agent=user_agent[:1000],
                source=resolve_source(request),
            )
            Asset.objects.filter(pk=asset.pk).update(listens_count=F('listens_count') + 1)
    except DatabaseError:
        logger.exception('Failed to record listen for asset %s', asset.pk)
        return None
    return listen
