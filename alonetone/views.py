import logging
import os
from urllib import parse as urllib_parse

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Max
from django.http import FileResponse, HttpResponseRedirect
from rest_framework import serializers, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .audit import get_client_ip, log_moderation_action
from .authorization import can_edit, can_moderate, current_user
from .commands import AssetCommand
from .ingestion import (
    InvalidAudioFile,
    SourceFetchError,
    UploadLimitExceeded,
    ingest,
    replace_audio,
    upload_limit_message,
    upload_limit_reached,
)
from .listens import record_listen
from .models import Asset, Comment, Playlist, PlaylistTrack, User
from .spam import classify_comment
from .variants import ImageVariant

logger = logging.getLogger(__name__)

TRUTHY_QUERY_VALUES = ('', '1', 'true', 'yes', 'on')


def _flag(request, name) -> bool:
    raw = request.query_params.get(name)
    if raw is None:
        return False
    return raw.strip().lower() in TRUTHY_QUERY_VALUES


def _parse_page(request, *, default_page_size=20, max_page_size=100):
    page = request.query_params.get('page', '1')
    page_size = request.query_params.get('page_size', str(default_page_size))
    try:
        page = max(int(page), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = int(page_size)
    except (TypeError, ValueError):
        page_size = default_page_size
    page_size = min(max(page_size, 1), max_page_size)
    return page, page_size


def _paginate(request, queryset, serialize, *, default_page_size=20):
    page, page_size = _parse_page(request, default_page_size=default_page_size)
    total_count = queryset.count()
    total_pages = max((total_count + page_size - 1) // page_size, 1)
    if page > total_pages:
        page = total_pages

    start = (page - 1) * page_size
    rows = list(queryset[start:start + page_size])
    results = serialize(rows)
    return {
        'count': len(results),
        'total_count': total_count,
        'page': page,
        'page_size': page_size,
        'total_pages': total_pages,
        'has_next': page < total_pages,
        'has_previous': page > 1,
        'results': results,
    }


def _get_user_or_none(login, actor=None):
    queryset = User.objects.filter(login=login)
    if not can_moderate(actor):
        queryset = queryset.visible()
    return queryset.first()


def asset_visible_to(asset, actor) -> bool:
    if can_moderate(actor):
        return True
    if asset.deleted_at is not None or asset.is_spam:
        return False
    if asset.is_private:
        return can_edit(actor, asset)
    return True


def get_asset_or_none(login, permalink, actor):
    user = _get_user_or_none(login, actor)
    if user is None:
        return None
    asset = Asset.objects.select_related('user').filter(user=user, permalink=permalink).first()
    if asset is None or not asset_visible_to(asset, actor):
        return None
    return asset


def _not_authenticated():
    return Response({'detail': 'Not authenticated.'}, status=status.HTTP_401_UNAUTHORIZED)


def _forbidden():
    return Response({'detail': 'You do not have permission to do that.'}, status=status.HTTP_403_FORBIDDEN)


class AssetSerializer(serializers.ModelSerializer):
    user = serializers.CharField(source='user.login', read_only=True)
    stream_url = serializers.SerializerMethodField()
    download_url = serializers.SerializerMethodField()

    def get_stream_url(self, obj):
        return f'/{obj.user.login}/tracks/{obj.permalink}.mp3'

    def get_download_url(self, obj):
        return f'/{obj.user.login}/tracks/{obj.permalink}/download/'

    class Meta:
        model = Asset
        fields = [
            'id',
            'user',
            'title',
            'permalink',
            'description',
            'stream_url',
            'download_url',
            'original_filename',
            'content_type',
            'file_size',
            'length_seconds',
            'waveform',
            'listens_count',
            'is_private',
            'created_at',
            'updated_at',
        ]


class CommentSerializer(serializers.ModelSerializer):
    track_owner = serializers.CharField(source='user.login', read_only=True)
    track = serializers.CharField(source='commentable.permalink', read_only=True)
    commenter = serializers.SerializerMethodField()

    def get_commenter(self, obj):
        return obj.commenter.login if obj.commenter_id else None

    class Meta:
        model = Comment
        fields = [
            'id',
            'body',
            'status',
            'is_private',
            'track_owner',
            'track',
            'commenter',
            'created_at',
        ]


class PlaylistSerializer(serializers.ModelSerializer):
    user = serializers.CharField(source='user.login', read_only=True)
    cover_image_url = serializers.SerializerMethodField()
    track_count = serializers.SerializerMethodField()

    def get_cover_image_url(self, obj):
        return obj.cover_image.url if obj.cover_image else None

    def get_track_count(self, obj):
        return obj.visible_tracks().count()

    class Meta:
        model = Playlist
        fields = [
            'id',
            'user',
            'title',
            'permalink',
            'description',
            'is_private',
            'published',
            'published_at',
            'position',
            'cover_image_url',
            'track_count',
            'created_at',
            'updated_at',
        ]


def _serialize_comments(rows):
    return CommentSerializer(rows, many=True).data


def _serialize_playlist_detail(playlist):
    payload = PlaylistSerializer(playlist).data
    payload['tracks'] = [
        {
            'id': str(entry.id),
            'position': entry.position,
            'asset': AssetSerializer(entry.asset).data,
        }
        for entry in playlist.visible_tracks()
    ]
    return payload


class TrackUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    is_private = serializers.BooleanField(required=False)
    audio_file = serializers.FileField(required=False, write_only=True)

    def validate_title(self, value):
        value = ' '.join(value.split())
        if not value:
            raise serializers.ValidationError('Title cannot be blank.')
        return value


class CommentCreateSerializer(serializers.Serializer):
    commentable_id = serializers.UUIDField()
    body = serializers.CharField(max_length=2000, trim_whitespace=True)
    is_private = serializers.BooleanField(required=False, default=False)


class PlaylistCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')


class PlaylistUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    is_private = serializers.BooleanField(required=False)


class PlaylistAddTrackSerializer(serializers.Serializer):
    asset_id = serializers.UUIDField()


class PlaylistRemoveTrackSerializer(serializers.Serializer):
    track_id = serializers.UUIDField()


class OrderedIdsSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)

    def validate_ids(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError('Duplicate ids are not allowed.')
        return value


class PlaylistCoverSerializer(serializers.Serializer):
    MAX_COVER_IMAGE_BYTES = 5 * 1024 * 1024
    ALLOWED_COVER_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}
    ALLOWED_COVER_IMAGE_MIME_TYPES = {'image/jpeg', 'image/png', 'image/webp'}

    cover_image = serializers.FileField()

    def validate_cover_image(self, uploaded_file):
        if uploaded_file.size > self.MAX_COVER_IMAGE_BYTES:
            raise serializers.ValidationError('Cover image must be 5MB or smaller.')

        extension = os.path.splitext(uploaded_file.name)[1].lower()
        if extension not in self.ALLOWED_COVER_IMAGE_EXTENSIONS:
            raise serializers.ValidationError('Only .jpg, .jpeg, .png, and .webp files are allowed.')

        content_type = (getattr(uploaded_file, 'content_type', '') or '').lower()
        if content_type not in self.ALLOWED_COVER_IMAGE_MIME_TYPES:
            raise serializers.ValidationError('Only image/jpeg, image/png, and image/webp are allowed.')
        return uploaded_file


class HomeView(APIView):
    permission_classes = []

    def get(self, request):
        published = Asset.objects.published().select_related('user')
        payload = _paginate(
            request,
            published.latest(),
            lambda rows: AssetSerializer(rows, many=True).data,
            default_page_size=15,
        )
        popular = published.filter(listens_count__gt=0).order_by('-listens_count', '-created_at')[:5]
        payload['popular'] = AssetSerializer(popular, many=True).data
        payload['theme'] = 'white' if _flag(request, 'white') else 'dark'
        payload['ok'] = True
        return Response(payload)


class UploadStatusView(APIView):
    permission_classes = []

    def get(self, request):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        limited = upload_limit_reached(actor)
        return Response(
            {
                'ok': True,
                'can_upload': not limited,
                'message': upload_limit_message() if limited else '',
                'max_upload_size_mb': settings.MAX_UPLOAD_SIZE_MB,
            }
        )


def _requested_urls(request):
    data = request.data
    if hasattr(data, 'getlist'):
        values = data.getlist('asset_data')
    else:
        values = data.get('asset_data') or []
        if isinstance(values, str):
            values = [values]
    return [value.strip() for value in values if isinstance(value, str) and value.strip()]


def _upload_redirect(user, result):
    if len(result.assets) == 1:
        return f'/{user.login}/tracks/{result.assets[0].permalink}/edit'
    query = urllib_parse.urlencode([('assets[]', str(asset.id)) for asset in result.assets])
    return f'/{user.login}/tracks/mass_edit?{query}'


class UserTracksView(APIView):
    permission_classes = []

    def get(self, request, login):
        actor = current_user(request)
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)

        queryset = Asset.objects.select_related('user').filter(user=user)
        if can_edit(actor, user):
            queryset = queryset.not_deleted()
        else:
            queryset = queryset.published()
        payload = _paginate(request, queryset.latest(), lambda rows: AssetSerializer(rows, many=True).data)
        payload['ok'] = True
        payload['user'] = {'login': user.login, 'name': user.name}
        return Response(payload)

    def post(self, request, login):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, user):
            return _forbidden()

        files = request.FILES.getlist('asset_data')
        urls = _requested_urls(request)
        if not files and not urls:
            return Response({'detail': 'Choose a file or paste a link to upload.'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            result = ingest(user, files=files, urls=urls)
        except UploadLimitExceeded as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_429_TOO_MANY_REQUESTS)

        if not result.assets:
            return Response(
                {'detail': 'None of the uploaded files could be read as audio.', 'errors': result.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )

        count = len(result.assets)
        message = f'{count} tracks uploaded!' if count > 1 else f'{result.assets[0].title} uploaded!'
        return Response(
            {
                'ok': True,
                'message': message,
                'assets': AssetSerializer(result.assets, many=True).data,
                'playlist': PlaylistSerializer(result.playlist).data if result.playlist else None,
                'errors': result.errors,
                'redirect_to': _upload_redirect(user, result),
            },
            status=status.HTTP_201_CREATED,
        )


class TrackDetailView(APIView):
    permission_classes = []

    def get(self, request, login, permalink):
        actor = current_user(request)
        asset = get_asset_or_none(login, permalink, actor)
        if asset is None:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)

        comments = (
            asset.comments.select_related('user', 'commenter', 'commentable')
            .public_or_private(can_edit(actor, asset))
            .order_by('created_at')
        )
        payload = AssetSerializer(asset).data
        payload['comments'] = CommentSerializer(comments, many=True).data
        return Response({'ok': True, 'asset': payload})

    def patch(self, request, login, permalink):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        asset = get_asset_or_none(login, permalink, actor)
        if asset is None:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, asset):
            return _forbidden()

        serializer = TrackUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        with transaction.atomic():
            update_fields = []
            for field in ('title', 'description', 'is_private'):
                if field in data:
                    setattr(asset, field, data[field])
                    update_fields.append(field)
            if update_fields:
                asset.save(update_fields=[*update_fields, 'updated_at'])
            if data.get('audio_file') is not None:
                try:
                    replace_audio(asset, data['audio_file'])
                except (InvalidAudioFile, SourceFetchError) as exc:
                    transaction.set_rollback(True)
                    return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({'ok': True, 'asset': AssetSerializer(asset).data})

    def delete(self, request, login, permalink):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        asset = get_asset_or_none(login, permalink, actor)
        if asset is None:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, asset):
            return _forbidden()

        AssetCommand(asset).soft_delete_with_relations()
        if actor.id != asset.user_id:
            log_moderation_action(
                request,
                moderator=actor,
                action='asset.delete',
                entity_type='asset',
                entity_id=asset.id,
                metadata={'title': asset.title, 'owner': asset.user.login},
            )
        return Response(
            {
                'ok': True,
                'message': f'We deleted {asset.title}.',
                'redirect_to': f'/{asset.user.login}/tracks/',
            }
        )


class TrackStreamView(APIView):
    permission_classes = []

    def get(self, request, login, permalink):
        asset = get_asset_or_none(login, permalink, current_user(request))
        if asset is None or not asset.audio_file:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)
        record_listen(request, asset)
        return HttpResponseRedirect(asset.audio_file.url)


class TrackDownloadView(APIView):
    permission_classes = []

    def get(self, request, login, permalink):
        asset = get_asset_or_none(login, permalink, current_user(request))
        if asset is None or not asset.audio_file:
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)
        record_listen(request, asset)

        extension = os.path.splitext(asset.audio_file.name)[1]
        return FileResponse(
            asset.audio_file.open('rb'),
            as_attachment=True,
            filename=f'{asset.permalink}{extension}',
            content_type=asset.content_type or None,
        )


class CommentsView(APIView):
    permission_classes = []

    def get(self, request):
        actor = current_user(request)
        moderator = can_moderate(actor)
        queryset = Comment.objects.select_related('user', 'commenter', 'commentable')
        if moderator:
            comments = queryset.visible()
        else:
            comments = queryset.public().filter(
                commentable__is_private=False,
                commentable__is_spam=False,
            )
        payload = _paginate(
            request,
            comments.order_by('-created_at'),
            _serialize_comments,
        )
        payload['ok'] = True
        if moderator:
            payload['spam'] = CommentSerializer(queryset.spam().order_by('-created_at')[:50], many=True).data
        return Response(payload)

    def post(self, request):
        serializer = CommentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        actor = current_user(request)
        asset = Asset.objects.select_related('user').filter(pk=data['commentable_id']).first()
        if asset is None or not asset_visible_to(asset, actor) or asset.deleted_at is not None:
            return Response(status=status.HTTP_400_BAD_REQUEST)

        comment = Comment.objects.create(
            commentable=asset,
            user=asset.user,
            commenter=actor,
            body=data['body'],
            is_private=data['is_private'],
            remote_ip=get_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
            referrer=request.META.get('HTTP_REFERER', ''),
        )
        verdict = classify_comment(comment)
        if verdict is not None:
            comment.mark(verdict)
        if comment.is_spam:
            logger.info('Comment %s on asset %s flagged as spam', comment.pk, asset.pk)
        return Response(status=status.HTTP_200_OK)


class UserCommentsView(APIView):
    permission_classes = []

    def get(self, request, login):
        actor = current_user(request)
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)

        show_private = can_edit(actor, user)
        queryset = Comment.objects.select_related('user', 'commenter', 'commentable').order_by('-created_at')
        received = queryset.filter(user=user).public_or_private(show_private)
        made = queryset.filter(commenter=user).public_or_private(show_private)
        if not show_private:
            made = made.filter(commentable__is_private=False)

        return Response(
            {
                'ok': True,
                'user': {'login': user.login, 'name': user.name},
                'received': _paginate(request, received, _serialize_comments),
                'made': _paginate(request, made, _serialize_comments),
            }
        )


class FollowView(APIView):
    permission_classes = []

    def post(self, request, login):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        followee = _get_user_or_none(login)
        if followee is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)
        if followee.id == actor.id:
            return Response({'detail': 'You cannot follow yourself.'}, status=status.HTTP_400_BAD_REQUEST)

        following = actor.add_or_remove_followee(followee)
        return Response({'ok': True, 'login': followee.login, 'following': following})


def _get_playlist_or_none(login, permalink, actor):
    user = _get_user_or_none(login, actor)
    if user is None:
        return None
    playlist = Playlist.objects.select_related('user').filter(user=user, permalink=permalink).first()
    if playlist is None:
        return None
    if playlist.is_private and not can_edit(actor, playlist):
        return None
    return playlist


class PlaylistEditMixin:
    """Resolve the playlist named in the URL and check the actor may edit it."""

    def load_editable_playlist(self, request, login, permalink):
        actor = current_user(request)
        if actor is None:
            return None, _not_authenticated()
        playlist = _get_playlist_or_none(login, permalink, actor)
        if playlist is None:
            return None, Response({'detail': 'Playlist not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, playlist):
            return None, _forbidden()
        return playlist, None


class UserPlaylistsView(APIView):
    permission_classes = []

    def get(self, request, login):
        actor = current_user(request)
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)

        queryset = Playlist.objects.select_related('user').filter(user=user)
        if not can_edit(actor, user):
            queryset = queryset.published()
        playlists = queryset.order_by('position', '-created_at')
        return Response({'ok': True, 'results': PlaylistSerializer(playlists, many=True).data})

    def post(self, request, login):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, user):
            return _forbidden()

        serializer = PlaylistCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        last_position = user.playlists.aggregate(value=Max('position'))['value'] or 0
        playlist = Playlist.objects.create(
            user=user,
            title=serializer.validated_data['title'].strip(),
            description=serializer.validated_data['description'],
            is_private=True,
            position=last_position + 1,
        )
        return Response({'ok': True, 'playlist': _serialize_playlist_detail(playlist)}, status=status.HTTP_201_CREATED)


class PlaylistSortView(APIView):
    permission_classes = []

    def post(self, request, login):
        actor = current_user(request)
        if actor is None:
            return _not_authenticated()
        user = _get_user_or_none(login, actor)
        if user is None:
            return Response({'detail': 'User not found.'}, status=status.HTTP_404_NOT_FOUND)
        if not can_edit(actor, user):
            return _forbidden()

        serializer = OrderedIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ids = serializer.validated_data['ids']
        playlists = {playlist.id: playlist for playlist in user.playlists.filter(id__in=ids)}
        if len(playlists) != len(ids):
            return Response({'detail': 'Unknown playlist in ordering.'}, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            for position, playlist_id in enumerate(ids, start=1):
                Playlist.objects.filter(pk=playlist_id).update(position=position)
        playlists = user.playlists.select_related('user').order_by('position', '-created_at')
        return Response({'ok': True, 'results': PlaylistSerializer(playlists, many=True).data})


class PlaylistDetailView(PlaylistEditMixin, APIView):
    permission_classes = []

    def get(self, request, login, permalink):
        playlist = _get_playlist_or_none(login, permalink, current_user(request))
        if playlist is None:
            return Response({'detail': 'Playlist not found.'}, status=status.HTTP_404_NOT_FOUND)
        return Response({'ok': True, 'playlist': _serialize_playlist_detail(playlist)})

    def patch(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        serializer = PlaylistUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        message = ''
        if 'title' in data:
            playlist.title = data['title'].strip()
        if 'description' in data:
            playlist.description = data['description']
        if 'is_private' in data and not playlist.set_privacy(data['is_private']):
            message = (
                f'A playlist needs at least {settings.PLAYLIST_MIN_TRACKS_TO_PUBLISH} tracks '
                'before it can be published.'
            )
        playlist.save()
        return Response({'ok': True, 'message': message, 'playlist': _serialize_playlist_detail(playlist)})

    def delete(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        cover_path = playlist.cover_image.name if playlist.cover_image else ''
        title = playlist.title
        playlist.delete()
        if cover_path:
            transaction.on_commit(lambda: default_storage.delete(cover_path))
        return Response(
            {
                'ok': True,
                'message': f'{title} was deleted.',
                'redirect_to': f'/{login}/playlists/',
            }
        )


class PlaylistAddTrackView(PlaylistEditMixin, APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        serializer = PlaylistAddTrackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        asset = Asset.objects.select_related('user').filter(pk=serializer.validated_data['asset_id']).first()
        if asset is None or asset.deleted_at is not None or not asset_visible_to(asset, current_user(request)):
            return Response({'detail': 'Track not found.'}, status=status.HTTP_404_NOT_FOUND)

        last_position = playlist.tracks.aggregate(value=Max('position'))['value'] or 0
        entry = PlaylistTrack.objects.create(playlist=playlist, asset=asset, position=last_position + 1)
        Playlist.objects.filter(pk=playlist.pk).update(updated_at=entry.created_at)
        return Response(
            {
                'ok': True,
                'track': {'id': str(entry.id), 'position': entry.position, 'asset': AssetSerializer(asset).data},
            },
            status=status.HTTP_201_CREATED,
        )


class PlaylistRemoveTrackView(PlaylistEditMixin, APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        serializer = PlaylistRemoveTrackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        deleted, _ = playlist.tracks.filter(pk=serializer.validated_data['track_id']).delete()
        if not deleted:
            return Response({'detail': 'Track is not in this playlist.'}, status=status.HTTP_404_NOT_FOUND)

        # Removing tracks can leave a published playlist under the minimum.
        if playlist.published and not playlist.set_privacy(False):
            playlist.save()
        return Response({'ok': True, 'playlist': _serialize_playlist_detail(playlist)})


class PlaylistSortTracksView(PlaylistEditMixin, APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        serializer = OrderedIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ids = serializer.validated_data['ids']
        if playlist.tracks.filter(id__in=ids).count() != len(ids):
            return Response({'detail': 'Unknown track in ordering.'}, status=status.HTTP_400_BAD_REQUEST)

        with transaction.atomic():
            for position, track_id in enumerate(ids, start=1):
                PlaylistTrack.objects.filter(pk=track_id).update(position=position)
        return Response({'ok': True, 'playlist': _serialize_playlist_detail(playlist)})


class PlaylistAttachPicView(PlaylistEditMixin, APIView):
    permission_classes = []

    def post(self, request, login, permalink):
        playlist, error = self.load_editable_playlist(request, login, permalink)
        if error is not None:
            return error

        serializer = PlaylistCoverSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        uploaded_file = serializer.validated_data['cover_image']

        old_path = playlist.cover_image.name if playlist.cover_image else ''
        playlist.cover_image.save(uploaded_file.name, uploaded_file, save=False)
        playlist.save()
        if old_path:
            transaction.on_commit(lambda: default_storage.delete(old_path))
        return Response({'ok': True, 'playlist': _serialize_playlist_detail(playlist)})


class PlaylistCoverVariantView(APIView):
    permission_classes = []

    def get(self, request, login, permalink, variant):
        playlist = _get_playlist_or_none(login, permalink, current_user(request))
        if playlist is None:
            return Response({'detail': 'Playlist not found.'}, status=status.HTTP_404_NOT_FOUND)
        try:
            image = ImageVariant(playlist.cover_image, variant=variant)
        except ValueError as exc:
            return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'ok': True, **image.as_dict()})
