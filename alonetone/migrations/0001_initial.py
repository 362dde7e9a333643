from django.db import migrations, models
import django.db.models.deletion
import uuid

import alonetone.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('login', models.CharField(max_length=40, unique=True)),
                ('email', models.EmailField(max_length=255, unique=True)),
                ('display_name', models.CharField(blank=True, default='', max_length=150)),
                ('role', models.CharField(choices=[('user', 'user'), ('moderator', 'moderator'), ('admin', 'admin')], default='user', max_length=20)),
                ('status', models.CharField(choices=[('active', 'active'), ('blocked', 'blocked')], db_index=True, default='active', max_length=20)),
                ('is_spam', models.BooleanField(db_index=True, default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'db_table': 'users',
            },
        ),
        migrations.CreateModel(
            name='UserSession',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('access_token', models.CharField(max_length=64, unique=True)),
                ('access_expires_at', models.DateTimeField()),
                ('revoked_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sessions', to='alonetone.user')),
            ],
            options={
                'db_table': 'user_sessions',
                'indexes': [models.Index(fields=['user'], name='idx_user_sessions_user')],
            },
        ),
        migrations.CreateModel(
            name='Follow',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('followee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='follower_links', to='alonetone.user')),
                ('follower', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='following_links', to='alonetone.user')),
            ],
            options={
                'db_table': 'follows',
                'constraints': [models.UniqueConstraint(fields=('follower', 'followee'), name='uq_follows_follower_followee')],
            },
        ),
        migrations.CreateModel(
            name='Asset',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('permalink', models.SlugField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('audio_file', models.FileField(blank=True, max_length=255, upload_to=alonetone.models.asset_upload_to)),
                ('original_filename', models.CharField(blank=True, default='', max_length=255)),
                ('content_type', models.CharField(blank=True, default='', max_length=100)),
                ('file_size', models.PositiveBigIntegerField(default=0)),
                ('length_seconds', models.FloatField(blank=True, null=True)),
                ('waveform', models.JSONField(blank=True, null=True)),
                ('is_private', models.BooleanField(default=False)),
                ('is_spam', models.BooleanField(default=False)),
                ('listens_count', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assets', to='alonetone.user')),
            ],
            options={
                'db_table': 'assets',
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='idx_assets_user_created'),
                    models.Index(fields=['created_at'], name='idx_assets_created'),
                ],
                'constraints': [models.UniqueConstraint(fields=('user', 'permalink'), name='uq_assets_user_permalink')],
            },
        ),
        migrations.CreateModel(
            name='Comment',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('body', models.TextField()),
                ('remote_ip', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True, default='')),
                ('referrer', models.TextField(blank=True, default='')),
                ('is_private', models.BooleanField(default=False)),
                ('status', models.CharField(choices=[('pending', 'pending'), ('ham', 'ham'), ('spam', 'spam')], db_index=True, default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('commentable', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='alonetone.asset')),
                ('commenter', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='comments_made', to='alonetone.user')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='comments', to='alonetone.user')),
            ],
            options={
                'db_table': 'comments',
                'indexes': [
                    models.Index(fields=['commentable', 'created_at'], name='idx_comments_asset_created'),
                    models.Index(fields=['user', 'created_at'], name='idx_comments_user_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Listen',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('ip', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.TextField(blank=True, default='')),
                ('source', models.TextField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='listens', to='alonetone.asset')),
                ('listener', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='listens', to='alonetone.user')),
                ('track_owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='track_plays', to='alonetone.user')),
            ],
            options={
                'db_table': 'listens',
                'indexes': [
                    models.Index(fields=['asset', 'ip', 'created_at'], name='idx_listens_asset_ip_created'),
                    models.Index(fields=['created_at'], name='idx_listens_created'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Playlist',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=255)),
                ('permalink', models.SlugField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('is_private', models.BooleanField(default=True)),
                ('published', models.BooleanField(default=False)),
                ('published_at', models.DateTimeField(blank=True, null=True)),
                ('position', models.IntegerField(default=0)),
                ('cover_image', models.FileField(blank=True, max_length=255, upload_to=alonetone.models.playlist_cover_upload_to)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='playlists', to='alonetone.user')),
            ],
            options={
                'db_table': 'playlists',
                'indexes': [models.Index(fields=['user', 'position'], name='idx_playlists_user_position')],
                'constraints': [models.UniqueConstraint(fields=('user', 'permalink'), name='uq_playlists_user_permalink')],
            },
        ),
        migrations.CreateModel(
            name='PlaylistTrack',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('asset', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='playlist_tracks', to='alonetone.asset')),
                ('playlist', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tracks', to='alonetone.playlist')),
            ],
            options={
                'db_table': 'playlist_tracks',
                'indexes': [
                    models.Index(fields=['playlist', 'position'], name='idx_playlist_tracks_position'),
                    models.Index(fields=['asset'], name='idx_playlist_tracks_asset'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ModerationLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(max_length=100)),
                ('entity_type', models.CharField(max_length=50)),
                ('entity_id', models.UUIDField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, null=True)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('moderator', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='moderation_logs', to='alonetone.user')),
            ],
            options={
                'db_table': 'moderation_logs',
            },
        ),
    ]
