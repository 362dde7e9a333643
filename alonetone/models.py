import os
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.text import slugify


def asset_upload_to(instance, filename):
    extension = os.path.splitext(filename)[1].lower()
    return f'assets/{instance.user_id}/{uuid.uuid4()}{extension}'


def playlist_cover_upload_to(instance, filename):
    extension = os.path.splitext(filename)[1].lower()
    return f'playlist_covers/{uuid.uuid4()}{extension}'


def _unique_permalink(lookup, title, *, fallback):
    base = slugify(title or '')[:200] or fallback
    candidate = base
    suffix = 2
    while lookup.filter(permalink=candidate).exists():
        candidate = f'{base}-{suffix}'
        suffix += 1
    return candidate


class UserQuerySet(models.QuerySet):
    def visible(self):
        return self.filter(is_spam=False, deleted_at__isnull=True)


class User(models.Model):
    class Role(models.TextChoices):
        USER = 'user', 'user'
        MODERATOR = 'moderator', 'moderator'
        ADMIN = 'admin', 'admin'

    class Status(models.TextChoices):
        ACTIVE = 'active', 'active'
        BLOCKED = 'blocked', 'blocked'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    login = models.CharField(max_length=40, unique=True)
    email = models.EmailField(unique=True, max_length=255)
    display_name = models.CharField(max_length=150, blank=True, default='')
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.USER)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    is_spam = models.BooleanField(default=False, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = UserQuerySet.as_manager()

    class Meta:
        db_table = 'users'

    def __str__(self):
        return self.login

    @property
    def name(self):
        return self.display_name or self.login

    @staticmethod
    def _sanitize_login_base(value: str) -> str:
        allowed = ''.join(ch for ch in (value or '').lower() if ch.isalnum() or ch in '_-')
        allowed = allowed.strip('_-')
        return allowed[:34]

    def _generate_unique_login(self) -> str:
        email_local = (self.email or '').split('@', 1)[0]
        base = self._sanitize_login_base(email_local)
        if not base:
            base = 'user'
        candidate = base
        suffix = 2
        lookup = User.objects.all()
        if self.pk:
            lookup = lookup.exclude(pk=self.pk)
        while lookup.filter(login__iexact=candidate).exists():
            candidate = f'{base}_{suffix}'
            suffix += 1
        return candidate

    def save(self, *args, **kwargs):
        self.email = (self.email or '').strip().lower()
        if self.login:
            self.login = self._sanitize_login_base(self.login.strip())
        if not self.login:
            self.login = self._generate_unique_login()
        super().save(*args, **kwargs)

    def follower_ids(self):
        return list(self.follower_links.values_list('follower_id', flat=True))

    def add_or_remove_followee(self, followee):
        """Toggle following ``followee``; returns True when now following."""
        deleted, _ = Follow.objects.filter(follower=self, followee=followee).delete()
        if deleted:
            return False
        Follow.objects.create(follower=self, followee=followee)
        return True


class UserSession(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sessions')
    access_token = models.CharField(max_length=64, unique=True)
    access_expires_at = models.DateTimeField()
    revoked_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'user_sessions'
        indexes = [
            models.Index(fields=['user'], name='idx_user_sessions_user'),
        ]


class Follow(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    follower = models.ForeignKey(User, on_delete=models.CASCADE, related_name='following_links')
    followee = models.ForeignKey(User, on_delete=models.CASCADE, related_name='follower_links')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'follows'
        constraints = [
            models.UniqueConstraint(fields=['follower', 'followee'], name='uq_follows_follower_followee'),
        ]


class AssetQuerySet(models.QuerySet):
    def not_deleted(self):
        return self.filter(deleted_at__isnull=True)

    def published(self):
        return self.filter(
            is_private=False,
            is_spam=False,
            deleted_at__isnull=True,
            user__is_spam=False,
            user__deleted_at__isnull=True,
        )

    def latest(self):
        return self.order_by('-created_at')


class Asset(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='assets')
    title = models.CharField(max_length=255)
    permalink = models.SlugField(max_length=255)
    description = models.TextField(blank=True, default='')
    audio_file = models.FileField(upload_to=asset_upload_to, max_length=255, blank=True)
    original_filename = models.CharField(max_length=255, blank=True, default='')
    content_type = models.CharField(max_length=100, blank=True, default='')
    file_size = models.PositiveBigIntegerField(default=0)
    length_seconds = models.FloatField(null=True, blank=True)
    waveform = models.JSONField(null=True, blank=True)
    is_private = models.BooleanField(default=False)
    is_spam = models.BooleanField(default=False)
    listens_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AssetQuerySet.as_manager()

    class Meta:
        db_table = 'assets'
        constraints = [
            models.UniqueConstraint(fields=['user', 'permalink'], name='uq_assets_user_permalink'),
        ]
        indexes = [
            models.Index(fields=['user', 'created_at'], name='idx_assets_user_created'),
            models.Index(fields=['created_at'], name='idx_assets_created'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.permalink:
            lookup = Asset.objects.filter(user_id=self.user_id)
            if self.pk:
                lookup = lookup.exclude(pk=self.pk)
            self.permalink = _unique_permalink(lookup, self.title, fallback='untitled')
        super().save(*args, **kwargs)


class CommentQuerySet(models.QuerySet):
    def visible(self):
        return self.filter(deleted_at__isnull=True, commentable__deleted_at__isnull=True)

    def public(self):
        return self.visible().filter(is_private=False).exclude(status=Comment.Status.SPAM)

    def public_or_private(self, show_private):
        if show_private:
            return self.visible()
        return self.public()

    def spam(self):
        return self.visible().filter(status=Comment.Status.SPAM)


class Comment(models.Model):
    class Status(models.TextChoices):
        PENDING = 'pending', 'pending'
        HAM = 'ham', 'ham'
        SPAM = 'spam', 'spam'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    commentable = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='comments')
    commenter = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='comments_made',
    )
    body = models.TextField()
    remote_ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default='')
    referrer = models.TextField(blank=True, default='')
    is_private = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = CommentQuerySet.as_manager()

    class Meta:
        db_table = 'comments'
        indexes = [
            models.Index(fields=['commentable', 'created_at'], name='idx_comments_asset_created'),
            models.Index(fields=['user', 'created_at'], name='idx_comments_user_created'),
        ]

    @property
    def is_spam(self):
        return self.status == self.Status.SPAM

    def mark(self, status):
        self.status = status
        self.save(update_fields=['status', 'updated_at'])


class ListenQuerySet(models.QuerySet):
    def visible(self):
        return self.filter(deleted_at__isnull=True)


class Listen(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    asset = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='listens')
    track_owner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='track_plays')
    listener = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='listens',
    )
    ip = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True, default='')
    source = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = ListenQuerySet.as_manager()

    class Meta:
        db_table = 'listens'
        indexes = [
            models.Index(fields=['asset', 'ip', 'created_at'], name='idx_listens_asset_ip_created'),
            models.Index(fields=['created_at'], name='idx_listens_created'),
        ]


class PlaylistQuerySet(models.QuerySet):
    def published(self):
        return self.filter(
            published=True,
            is_private=False,
            user__is_spam=False,
            user__deleted_at__isnull=True,
        )


class Playlist(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='playlists')
    title = models.CharField(max_length=255)
    permalink = models.SlugField(max_length=255)
    description = models.TextField(blank=True, default='')
    is_private = models.BooleanField(default=True)
    published = models.BooleanField(default=False)
    published_at = models.DateTimeField(null=True, blank=True)
    position = models.IntegerField(default=0)
    cover_image = models.FileField(upload_to=playlist_cover_upload_to, max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PlaylistQuerySet.as_manager()

    class Meta:
        db_table = 'playlists'
        constraints = [
            models.UniqueConstraint(fields=['user', 'permalink'], name='uq_playlists_user_permalink'),
        ]
        indexes = [
            models.Index(fields=['user', 'position'], name='idx_playlists_user_position'),
        ]

    def __str__(self):
        return self.title

    def save(self, *args, **kwargs):
        if not self.permalink:
            lookup = Playlist.objects.filter(user_id=self.user_id)
            if self.pk:
                lookup = lookup.exclude(pk=self.pk)
            self.permalink = _unique_permalink(lookup, self.title, fallback='playlist')
        super().save(*args, **kwargs)

    def visible_tracks(self):
        return (
            self.tracks.filter(asset__deleted_at__isnull=True, asset__is_spam=False)
            .select_related('asset', 'asset__user')
            .order_by('position', 'created_at')
        )

    def set_privacy(self, is_private):
        """Apply a privacy change; publishing needs enough visible tracks.

        Returns False when a publish was requested but refused.
        """
        if is_private:
            self.is_private = True
            self.published = False
            return True

        min_tracks = getattr(settings, 'PLAYLIST_MIN_TRACKS_TO_PUBLISH', 2)
        if self.visible_tracks().count() < min_tracks:
            self.is_private = True
            self.published = False
            return False

        self.is_private = False
        self.published = True
        if self.published_at is None:
            self.published_at = timezone.now()
        return True


class PlaylistTrack(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    playlist = models.ForeignKey(Playlist, on_delete=models.CASCADE, related_name='tracks')
    asset = models.ForeignKey(Asset, on_delete=models.CASCADE, related_name='playlist_tracks')
    position = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'playlist_tracks'
        indexes = [
            models.Index(fields=['playlist', 'position'], name='idx_playlist_tracks_position'),
            models.Index(fields=['asset'], name='idx_playlist_tracks_asset'),
        ]


class ModerationLog(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    moderator = models.ForeignKey(User, on_delete=models.CASCADE, related_name='moderation_logs')
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=50)
    entity_id = models.UUIDField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'moderation_logs'
