import logging

from django.db import transaction
from django.utils import timezone

from .models import Asset, Comment, Listen, User

logger = logging.getLogger(__name__)


class AssetCommand:
    def __init__(self, asset):
        self.asset = asset

    def _lock(self):
        self.asset = Asset.objects.select_for_update().get(pk=self.asset.pk)
        return self.asset

    def _hide(self, *, spam):
        asset = self._lock()
        stamp = asset.deleted_at or timezone.now()
        asset.deleted_at = stamp
        if spam:
            asset.is_spam = True
        asset.save(update_fields=['deleted_at', 'is_spam', 'updated_at'])
        comments = Comment.objects.filter(commentable=asset, deleted_at__isnull=True).update(deleted_at=stamp)
        listens = Listen.objects.filter(asset=asset, deleted_at__isnull=True).update(deleted_at=stamp)
        logger.info(
            'Asset %s hidden (spam=%s): %s comments, %s listens',
            asset.pk,
            spam,
            comments,
            listens,
        )
        return asset

    @transaction.atomic
    def soft_delete_with_relations(self):
        return self._hide(spam=False)

    @transaction.atomic
    def spam_and_soft_delete_with_relations(self):
        return self._hide(spam=True)

    @transaction.atomic
    def restore_with_relations(self):
        asset = self._lock()
        stamp = asset.deleted_at
        if stamp is not None:
            Comment.objects.filter(commentable=asset, deleted_at=stamp).update(deleted_at=None)
            Listen.objects.filter(asset=asset, deleted_at=stamp).update(deleted_at=None)
        asset.deleted_at = None
        asset.is_spam = False
        asset.save(update_fields=['deleted_at', 'is_spam', 'updated_at'])
        logger.info('Asset %s restored', asset.pk)
        return asset


class UserCommand:
    def __init__(self, user):
        self.user = user

    def _lock(self):
        self.user = User.objects.select_for_update().get(pk=self.user.pk)
        return self.user

    def _hide(self, *, spam):
        user = self._lock()
        stamp = user.deleted_at or timezone.now()
        user.deleted_at = stamp
        if spam:
            user.is_spam = True
        user.save(update_fields=['deleted_at', 'is_spam', 'updated_at'])

        assets = Asset.objects.filter(user=user, deleted_at__isnull=True)
        asset_ids = list(assets.values_list('id', flat=True))
        asset_updates = {'deleted_at': stamp}
        if spam:
            asset_updates['is_spam'] = True
        Asset.objects.filter(id__in=asset_ids).update(**asset_updates)

        received = Comment.objects.filter(commentable__user=user, deleted_at__isnull=True).update(deleted_at=stamp)
        made_comments = Comment.objects.filter(commenter=user, deleted_at__isnull=True)
        if spam:
            # Comments already marked spam stay hidden by their status and keep it on restore.
            made = made_comments.exclude(status=Comment.Status.SPAM).update(
                deleted_at=stamp,
                status=Comment.Status.SPAM,
            )
        else:
            made = made_comments.update(deleted_at=stamp)
        listens = Listen.objects.filter(asset__user=user, deleted_at__isnull=True).update(deleted_at=stamp)
        logger.info(
            'User %s hidden (spam=%s): %s assets, %s comments received, %s comments made, %s listens',
            user.login,
            spam,
            len(asset_ids),
            received,
            made,
            listens,
        )
        return user

    @transaction.atomic
    def soft_delete_with_relations(self):
        return self._hide(spam=False)

    @transaction.atomic
    def spam_and_soft_delete_with_relations(self):
        return self._hide(spam=True)

    @transaction.atomic
    def restore_with_relations(self):
        user = self._lock()
        stamp = user.deleted_at
        if stamp is not None:
            Asset.objects.filter(user=user, deleted_at=stamp).update(deleted_at=None, is_spam=False)
            Comment.objects.filter(commentable__user=user, deleted_at=stamp).update(deleted_at=None)
            made_comments = Comment.objects.filter(commenter=user, deleted_at=stamp)
            if user.is_spam:
                made_comments.filter(status=Comment.Status.SPAM).update(deleted_at=None, status=Comment.Status.HAM)
            made_comments.update(deleted_at=None)
            Listen.objects.filter(asset__user=user, deleted_at=stamp).update(deleted_at=None)
        user.deleted_at = None
        user.is_spam = False
        user.save(update_fields=['deleted_at', 'is_spam', 'updated_at'])
        logger.info('User %s restored', user.login)
        return user
