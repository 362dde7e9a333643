import logging

from django.db import transaction
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .audit import log_moderation_action
from .authorization import can_moderate, current_user
from .commands import AssetCommand, UserCommand
from .models import Asset, Comment, User
from .spam import HAM, SPAM, report_comment
from .views import AssetSerializer, CommentSerializer

logger = logging.getLogger(__name__)


def _require_moderator(request):
    actor = current_user(request)
    if actor is None:
        return None, Response({'detail': 'Not authenticated.'}, status=status.HTTP_401_UNAUTHORIZED)
    if not can_moderate(actor):
        return None, Response({'detail': 'Moderator access required.'}, status=status.HTTP_403_FORBIDDEN)
    return actor, None


def _get_comment(comment_id):
    return Comment.objects.select_related('user', 'commenter', 'commentable').filter(pk=comment_id).first()


def _flag_comment_as_spam(request, moderator, comment, *, action):
    comment.mark(Comment.Status.SPAM)
    # Tell the classifier about spam it let through.
    report_comment(comment, SPAM)
    log_moderation_action(
        request,
        moderator=moderator,
        action=action,
        entity_type='comment',
        entity_id=comment.id,
        metadata={'asset_id': str(comment.commentable_id)},
    )


class CommentSpamView(APIView):
    permission_classes = []

    def post(self, request, id):
        moderator, error = _require_moderator(request)
        if error is not None:
            return error
        comment = _get_comment(id)
        if comment is None:
            return Response({'detail': 'Comment not found.'}, status=status.HTTP_404_NOT_FOUND)

        _flag_comment_as_spam(request, moderator, comment, action='comment.spam')
        return Response({'ok': True, 'message': 'Comment marked as spam.', 'comment': CommentSerializer(comment).data})


class CommentUnspamView(APIView):
    permission_classes = []

    def post(self, request, id):
        moderator, error = _require_moderator(request)
        if error is not None:
            return error
        comment = _get_comment(id)
        if comment is None:
            return Response({'detail': 'Comment not found.'}, status=status.HTTP_404_NOT_FOUND)

        was_spam = comment.is_spam
        comment.mark(Comment.Status.HAM)
        if was_spam:
            report_comment(comment, HAM)
        log_moderation_action(
            request,
            moderator=moderator,
            action='comment.unspam',
            entity_type='comment',
            entity_id=comment.id,
            metadata={'asset_id': str(comment.commentable_id), 'was_spam': was_spam},
        )
        return Response({'ok': True, 'message': 'Comment marked as not spam.', 'comment': CommentSerializer(comment).data})


class CommentDestroyView(APIView):
    permission_classes = []

    def post(self, request, id):
        moderator, error = _require_moderator(request)
        if error is not None:
            return error
        comment = _get_comment(id)
        if comment is None:
            return Response({'detail': 'Comment not found.'}, status=status.HTTP_404_NOT_FOUND)

        if str(request.data.get('spam') or request.query_params.get('spam') or '').lower() in ('1', 'true', 'yes'):
            _flag_comment_as_spam(request, moderator, comment, action='comment.destroy_as_spam')
            return Response({'ok': True, 'message': 'Comment marked as spam.', 'comment': CommentSerializer(comment).data})

        comment_id = comment.id
        metadata = {'asset_id': str(comment.commentable_id), 'body': comment.body[:200]}
        comment.delete()
        log_moderation_action(
            request,
            moderator=moderator,
            action='comment.destroy',
            entity_type='comment',
            entity_id=comment_id,
            metadata=metadata,
        )
        return Response({'ok': True, 'message': 'Comment deleted.'})


def _get_any_asset(login, permalink):
    return Asset.objects.select_related('user').filter(user__login=login, permalink=permalink).first()


class TrackSpamView(APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        moderator, error = _require_moderator(request)
        if error is not None:
            return error
        asset = _get_any_asset(login, permalink)
        if asset is None:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)

        asset = AssetCommand(asset).spam_and_soft_delete_with_relations()
        log_moderation_action(
            request,
            moderator=moderator,
            action='asset.spam',
            entity_type='asset',
            entity_id=asset.id,
            metadata={'title': asset.title, 'owner': login},
        )
        return Response(
            {
                'ok': True,
                'message': f'{asset.title} was marked as spam.',
                'asset': AssetSerializer(asset).data,
                'redirect_to': f'/{login}/tracks/',
            }
        )


class TrackUnspamView(APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        moderator, error = _require_moderator(request)
        if error is not None:
            return error
        asset = _get_any_asset(login, permalink)
        if asset is None:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)

        asset = AssetCommand(asset).restore_with_relations()
        log_moderation_action(
            request,
            moderator=moderator,
            action='asset.unspam',
            entity_type='asset',
            entity_id=asset.id,
            metadata={'title': asset.title, 'owner': login},
        )
        return Response(
            {
                'ok': True,
                'message': f'{asset.title} was restored.',
                'asset': AssetSerializer(asset).data,
                'redirect_to': f'/{login}/tracks/{asset.permalink}/',
            }
        )


class ModerationUserActionView(APIView):
    """Apply one UserCommand operation to the account named in the URL."""

    permission_classes = []
    operation = None
    action = ''
    message = ''

    def post(self, request, login):
        moderator = request.moderator
        user = User.objects.filter(login=login).first()
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)
        if user.id == moderator.id:
            return Response({'detail': 'You cannot moderate your own account.'}, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            user = getattr(UserCommand(user), self.operation)()
            log_moderation_action(
                request,
                moderator=moderator,
                action=self.action,
                entity_type='user',
                entity_id=user.id,
                metadata={'login': user.login},
            )
        logger.info('%s by %s on %s', self.action, moderator.login, user.login)
        return Response(
            {
                'ok': True,
                'message': self.message.format(login=user.login),
                'user': {
                    'login': user.login,
                    'is_spam': user.is_spam,
                    'deleted_at': user.deleted_at,
                },
            }
        )


class ModerationUserSpamView(ModerationUserActionView):
    operation = 'spam_and_soft_delete_with_relations'
    action = 'user.spam'
    message = '{login} was marked as spam and hidden.'


class ModerationUserDeleteView(ModerationUserActionView):
    operation = 'soft_delete_with_relations'
    action = 'user.delete'
    message = '{login} was deleted.'


class ModerationUserRestoreView(ModerationUserActionView):
    operation = 'restore_with_relations'
    action = 'user.restore'
    message = '{login} was restored.'
