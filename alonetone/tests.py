import array
import io
import os
import secrets
import shutil
import struct
import tempfile
import wave
import zipfile
from unittest.mock import MagicMock, patch
from urllib import error as urllib_error

from django.core import mail
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.db import DatabaseError
from django.test import override_settings
from django.utils import timezone
from mutagen.id3 import TIT2
from mutagen.wave import WAVE
from rest_framework import status
from rest_framework.test import APITestCase

from .authorization import can_edit, can_moderate
from .commands import AssetCommand, UserCommand
from .ingestion import sanitize_filename_title, upload_limit_message
from .listens import DIRECT_HIT, is_bot
from .models import Asset, Comment, Follow, Listen, ModerationLog, Playlist, PlaylistTrack, User, UserSession
from .spam import HAM, SPAM, ClassifierError
from .tasks import compute_peaks, extract_waveform, notify_follower_of_upload
from .variants import VARIANTS, ImageVariant, variant_options, verify

BROWSER_UA = 'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 Safari/605.1.15'
PNG_BYTES = (
    b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89'
    b'\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82'
)


def make_wav_bytes(seconds=0.25, framerate=8000):
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(framerate)
        wav.writeframes(b'\x00\x00' * int(framerate * seconds))
    return buffer.getvalue()


def make_tagged_wav_bytes(title):
    handle, path = tempfile.mkstemp(suffix='.wav')
    os.close(handle)
    try:
        with open(path, 'wb') as output:
            output.write(make_wav_bytes())
        audio = WAVE(path)
        audio.add_tags()
        audio.tags.add(TIT2(encoding=3, text=[title]))
        audio.save()
        with open(path, 'rb') as tagged:
            return tagged.read()
    finally:
        os.remove(path)


def make_zip_bytes(members):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w') as archive:
        for name, content in members:
            archive.writestr(name, content)
    return buffer.getvalue()


def corrupt_zip_member(archive_bytes, member_name):
    with zipfile.ZipFile(io.BytesIO(archive_bytes)) as archive:
        info = archive.getinfo(member_name)
    data = bytearray(archive_bytes)
    header = info.header_offset
    name_length, extra_length = struct.unpack('<HH', data[header + 26:header + 30])
    # Flip a byte of stored PCM payload so the CRC check fails on read.
    data[header + 30 + name_length + extra_length + 100] ^= 0xFF
    return bytes(data)


class AlonetoneTestCase(APITestCase):
    def setUp(self):
        self.client.defaults['HTTP_HOST'] = 'localhost'
        media_root = tempfile.mkdtemp()
        media_override = override_settings(MEDIA_ROOT=media_root)
        media_override.enable()
        self.addCleanup(media_override.disable)
        self.addCleanup(shutil.rmtree, media_root, True)

    @staticmethod
    def create_user(login, *, role=User.Role.USER, **extra):
        return User.objects.create(login=login, email=f'{login}@alonetone.test', role=role, **extra)

    def authenticate(self, user):
        session = UserSession.objects.create(
            user=user,
            access_token=secrets.token_hex(32),
            access_expires_at=timezone.now() + timezone.timedelta(days=1),
        )
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {session.access_token}')
        return session

    @staticmethod
    def create_asset(user, title='Song', **extra):
        extra.setdefault('audio_file', SimpleUploadedFile('song.wav', make_wav_bytes(), content_type='audio/wav'))
        return Asset.objects.create(user=user, title=title, content_type='audio/wav', **extra)

    @staticmethod
    def create_comment(asset, *, commenter=None, **extra):
        return Comment.objects.create(
            commentable=asset,
            user=asset.user,
            commenter=commenter,
            body=extra.pop('body', 'Lovely track'),
            **extra,
        )

    def home_ids(self):
        self.client.credentials()
        response = self.client.get('/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        return [row['id'] for row in response.data['results']]


class ListenTrackingTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur')
        self.asset = self.create_asset(self.arthur, title='Old Muppet Men Booing')
        self.stream_url = f'/arthur/tracks/{self.asset.permalink}.mp3'

    def test_is_bot_detects_crawlers_and_empty_agents(self):
        self.assertTrue(is_bot(''))
        self.assertTrue(is_bot(None))
        self.assertTrue(is_bot('Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)'))
        self.assertTrue(is_bot('Baiduspider+(+http://www.baidu.com/search/spider.htm)'))
        self.assertFalse(is_bot(BROWSER_UA))

    def test_bot_request_streams_without_recording_listen(self):
        response = self.client.get(self.stream_url, HTTP_USER_AGENT='msnbot/2.0b')

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(Listen.objects.count(), 0)

    def test_request_without_user_agent_is_not_counted(self):
        response = self.client.get(self.stream_url)

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(Listen.objects.count(), 0)

    def test_first_play_is_recorded_once_within_window(self):
        first = self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)
        second = self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)

        self.assertEqual(first.status_code, status.HTTP_302_FOUND)
        self.assertEqual(second.status_code, status.HTTP_302_FOUND)
        self.assertEqual(Listen.objects.filter(asset=self.asset).count(), 1)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.listens_count, 1)

    def test_play_after_window_is_recorded_again(self):
        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)
        Listen.objects.update(created_at=timezone.now() - timezone.timedelta(minutes=6))

        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)

        self.assertEqual(Listen.objects.filter(asset=self.asset).count(), 2)

    def test_other_ip_is_counted_separately(self):
        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA, REMOTE_ADDR='10.0.0.1')
        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA, REMOTE_ADDR='10.0.0.2')

        self.assertEqual(Listen.objects.count(), 2)

    def test_source_prefers_referer_param_then_header_then_direct_hit(self):
        self.client.get(
            f'{self.stream_url}?referer=itunes',
            HTTP_USER_AGENT=BROWSER_UA,
            HTTP_REFERER='https://alonetone.com/arthur',
            REMOTE_ADDR='10.0.0.1',
        )
        self.client.get(
            self.stream_url,
            HTTP_USER_AGENT=BROWSER_UA,
            HTTP_REFERER='https://alonetone.com/arthur',
            REMOTE_ADDR='10.0.0.2',
        )
        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA, REMOTE_ADDR='10.0.0.3')

        sources = dict(Listen.objects.values_list('ip', 'source'))
        self.assertEqual(sources['10.0.0.1'], 'itunes')
        self.assertEqual(sources['10.0.0.2'], 'https://alonetone.com/arthur')
        self.assertEqual(sources['10.0.0.3'], DIRECT_HIT)

    def test_listen_records_authenticated_listener(self):
        sudara = self.create_user('sudara')
        self.authenticate(sudara)

        self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)

        listen = Listen.objects.get()
        self.assertEqual(listen.listener, sudara)
        self.assertEqual(listen.track_owner, self.arthur)

    def test_download_records_listen_and_sends_attachment(self):
        response = self.client.get(f'/arthur/tracks/{self.asset.permalink}/download/', HTTP_USER_AGENT=BROWSER_UA)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', response['Content-Disposition'])
        self.assertTrue(b''.join(response.streaming_content).startswith(b'RIFF'))
        response.close()
        self.assertEqual(Listen.objects.count(), 1)

    def test_listen_storage_failure_still_streams(self):
        with patch('alonetone.listens.Listen.objects.create', side_effect=DatabaseError('disk full')):
            response = self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(Listen.objects.count(), 0)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.listens_count, 0)

    def test_private_track_is_hidden_from_strangers(self):
        self.asset.is_private = True
        self.asset.save()

        response = self.client.get(self.stream_url, HTTP_USER_AGENT=BROWSER_UA)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(Listen.objects.count(), 0)


class AssetIngestionTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur')
        self.authenticate(self.arthur)

    def upload(self, files=None, *, json_data=None):
        if json_data is not None:
            return self.client.post('/arthur/tracks/', data=json_data, format='json')
        return self.client.post('/arthur/tracks/', data={'asset_data': files}, format='multipart')

    @patch('alonetone.ingestion.notify_follower_of_upload.delay')
    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_single_upload_uses_title_tag(self, waveform_delay, notify_delay):
        upload = SimpleUploadedFile('muppets.wav', make_tagged_wav_bytes('Old Muppet Men Booing'), content_type='audio/wav')

        with self.captureOnCommitCallbacks(execute=True):
            response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        asset = Asset.objects.get(user=self.arthur)
        self.assertEqual(asset.title, 'Old Muppet Men Booing')
        self.assertEqual(asset.permalink, 'old-muppet-men-booing')
        self.assertAlmostEqual(asset.length_seconds, 0.25, places=2)
        self.assertEqual(response.data['redirect_to'], '/arthur/tracks/old-muppet-men-booing/edit')
        self.assertIsNone(response.data['playlist'])
        waveform_delay.assert_called_once_with(str(asset.id))
        notify_delay.assert_not_called()

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_untagged_upload_uses_sanitized_filename(self, waveform_delay):
        upload = SimpleUploadedFile('empty_tags  mix.wav', make_wav_bytes(), content_type='audio/wav')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.get().title, 'empty tags mix')

    def test_sanitize_filename_title(self):
        self.assertEqual(sanitize_filename_title('My_Song__Final.mp3'), 'My Song Final')
        self.assertEqual(sanitize_filename_title('folder/Take 2 .wav'), 'Take 2')

    @patch('alonetone.ingestion.notify_follower_of_upload.delay')
    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_followers_are_notified_per_asset(self, waveform_delay, notify_delay):
        for login in ('sudara', 'aaron'):
            Follow.objects.create(follower=self.create_user(login), followee=self.arthur)
        upload = SimpleUploadedFile('muppets.wav', make_wav_bytes(), content_type='audio/mp3')

        with self.captureOnCommitCallbacks(execute=True):
            response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(waveform_delay.call_count, 1)
        self.assertEqual(notify_delay.call_count, 2)

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_zip_with_one_invalid_member_creates_single_asset_without_playlist(self, waveform_delay):
        archive = make_zip_bytes(
            [
                ('1valid-1invalid/good.wav', make_wav_bytes()),
                ('1valid-1invalid/broken.mp3', b'this is not really audio ' * 20),
            ]
        )
        upload = SimpleUploadedFile('1valid-1invalid.zip', archive, content_type='application/zip')

        with self.captureOnCommitCallbacks(execute=True):
            response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.count(), 1)
        self.assertEqual(Playlist.objects.count(), 0)
        self.assertEqual(len(response.data['errors']), 1)
        self.assertEqual(waveform_delay.call_count, 1)

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_zip_with_corrupted_member_keeps_readable_members(self, waveform_delay):
        archive = corrupt_zip_member(
            make_zip_bytes([('good.wav', make_wav_bytes()), ('bad.wav', make_wav_bytes())]),
            'bad.wav',
        )
        upload = SimpleUploadedFile('damaged.zip', archive, content_type='application/zip')

        with self.captureOnCommitCallbacks(execute=True):
            response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.get().original_filename, 'good.wav')
        self.assertEqual(Playlist.objects.count(), 0)
        self.assertEqual(len(response.data['errors']), 1)
        self.assertTrue(response.data['errors'][0]['source'].endswith(':bad.wav'))
        self.assertEqual(waveform_delay.call_count, 1)

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_zip_with_three_members_creates_album_playlist(self, waveform_delay):
        archive = make_zip_bytes(
            [
                ('Le Duc Vacherin/01 Intro.wav', make_wav_bytes()),
                ('Le Duc Vacherin/02 Bridge.wav', make_wav_bytes()),
                ('Le Duc Vacherin/03 Outro.wav', make_wav_bytes()),
                ('__MACOSX/Le Duc Vacherin/._01 Intro.wav', b'resource fork'),
                ('Le Duc Vacherin/cover.txt', b'notes'),
            ]
        )
        upload = SimpleUploadedFile('Le Duc Vacherin.zip', archive, content_type='application/zip')

        with self.captureOnCommitCallbacks(execute=True):
            response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.count(), 3)
        playlist = Playlist.objects.get()
        self.assertEqual(playlist.title, 'Le Duc Vacherin')
        self.assertTrue(playlist.is_private)
        self.assertFalse(playlist.published)
        self.assertEqual(
            list(playlist.tracks.order_by('position').values_list('asset__title', flat=True)),
            ['01 Intro', '02 Bridge', '03 Outro'],
        )
        self.assertEqual(waveform_delay.call_count, 3)
        self.assertTrue(response.data['redirect_to'].startswith('/arthur/tracks/mass_edit?'))

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_two_files_create_album_playlist(self, waveform_delay):
        uploads = [
            SimpleUploadedFile('one.wav', make_wav_bytes(), content_type='audio/wav'),
            SimpleUploadedFile('two.wav', make_wav_bytes(), content_type='audio/wav'),
        ]

        response = self.upload(uploads)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.count(), 2)
        self.assertEqual(Playlist.objects.count(), 1)
        self.assertTrue(Playlist.objects.get().title.startswith('Upload '))

    @patch('alonetone.ingestion.extract_waveform.delay')
    @patch('alonetone.ingestion.urllib_request.urlopen')
    def test_remote_url_is_downloaded(self, urlopen, waveform_delay):
        remote = MagicMock()
        remote.read.return_value = make_wav_bytes()
        remote.headers.get_content_type.return_value = 'audio/wav'
        urlopen.return_value.__enter__.return_value = remote

        response = self.upload(json_data={'asset_data': ['https://example.com/music/remote_song.wav']})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        asset = Asset.objects.get()
        self.assertEqual(asset.title, 'remote song')
        self.assertEqual(urlopen.call_args[0][0], 'https://example.com/music/remote_song.wav')

    @patch('alonetone.ingestion.urllib_request.urlopen')
    def test_unreachable_url_is_reported(self, urlopen):
        urlopen.side_effect = urllib_error.URLError('connection refused')

        response = self.upload(json_data={'asset_data': ['https://example.com/gone.mp3']})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['errors'][0]['source'], 'https://example.com/gone.mp3')
        self.assertEqual(Asset.objects.count(), 0)

    def test_invalid_audio_upload_is_rejected(self):
        upload = SimpleUploadedFile('notes.mp3', b'definitely not audio ' * 10, content_type='audio/mpeg')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Asset.objects.count(), 0)

    def test_new_user_upload_limit(self):
        for index in range(25):
            Asset.objects.create(user=self.arthur, title=f'Song {index}')
        upload = SimpleUploadedFile('one-more.wav', make_wav_bytes(), content_type='audio/wav')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(
            response.data['detail'],
            'To prevent abuse, new users are limited to 25 uploads in their first day. Come back tomorrow!',
        )
        self.assertEqual(response.data['detail'], upload_limit_message())
        self.assertEqual(Asset.objects.count(), 25)

    @patch('alonetone.ingestion.extract_waveform.delay')
    def test_established_user_is_not_limited(self, waveform_delay):
        User.objects.filter(pk=self.arthur.pk).update(created_at=timezone.now() - timezone.timedelta(days=2))
        for index in range(25):
            Asset.objects.create(user=self.arthur, title=f'Song {index}')
        upload = SimpleUploadedFile('one-more.wav', make_wav_bytes(), content_type='audio/wav')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Asset.objects.count(), 26)

    def test_upload_status_reports_limit(self):
        for index in range(25):
            Asset.objects.create(user=self.arthur, title=f'Song {index}')

        response = self.client.get('/upload/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['can_upload'])
        self.assertEqual(response.data['message'], upload_limit_message())

    def test_upload_requires_authentication(self):
        self.client.credentials()
        upload = SimpleUploadedFile('muppets.wav', make_wav_bytes(), content_type='audio/wav')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_cannot_upload_to_someone_elses_account(self):
        self.authenticate(self.create_user('sudara'))
        upload = SimpleUploadedFile('muppets.wav', make_wav_bytes(), content_type='audio/wav')

        response = self.upload([upload])

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(Asset.objects.count(), 0)


@override_settings(SPAM_CLASSIFIER='alonetone.spam.NullClassifier')
class CommentTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur')
        self.sudara = self.create_user('sudara')
        self.moderator = self.create_user('sandbag', role=User.Role.MODERATOR)
        self.asset = self.create_asset(self.arthur)

    def post_comment(self, body='Really nice work'):
        return self.client.post(
            '/comments/',
            data={'commentable_id': str(self.asset.id), 'body': body},
            format='json',
            HTTP_USER_AGENT=BROWSER_UA,
            HTTP_REFERER='https://alonetone.com/arthur/tracks/song',
        )

    def test_create_comment_returns_empty_success(self):
        self.authenticate(self.sudara)

        response = self.post_comment()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b'')
        comment = Comment.objects.get()
        self.assertEqual(comment.commenter, self.sudara)
        self.assertEqual(comment.user, self.arthur)
        self.assertEqual(comment.status, Comment.Status.HAM)
        self.assertEqual(comment.user_agent, BROWSER_UA)
        self.assertEqual(comment.referrer, 'https://alonetone.com/arthur/tracks/song')

    def test_blank_comment_is_rejected_with_empty_body(self):
        response = self.post_comment(body='   ')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.content, b'')
        self.assertEqual(Comment.objects.count(), 0)

    def test_comment_on_missing_asset_is_rejected(self):
        self.asset.delete()

        response = self.post_comment()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('alonetone.spam.get_spam_classifier')
    def test_classifier_spam_verdict_flags_comment(self, get_classifier):
        get_classifier.return_value.classify.return_value = SPAM

        response = self.post_comment(body='cheap pills')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b'')
        self.assertEqual(Comment.objects.get().status, Comment.Status.SPAM)

    @patch('alonetone.spam.get_spam_classifier')
    def test_classifier_failure_leaves_comment_pending(self, get_classifier):
        get_classifier.return_value.classify.side_effect = ClassifierError('akismet down')

        response = self.post_comment()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Comment.objects.get().status, Comment.Status.PENDING)

    @override_settings(SPAM_CLASSIFIER='alonetone.spam.AkismetClassifier', AKISMET_API_KEY='test-key')
    @patch('alonetone.spam.urllib_request.urlopen')
    def test_classifier_read_timeout_leaves_comment_pending(self, urlopen):
        urlopen.return_value.__enter__.return_value.read.side_effect = TimeoutError('timed out')
        self.authenticate(self.sudara)

        response = self.post_comment()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, b'')
        self.assertEqual(Comment.objects.get().status, Comment.Status.PENDING)

    @override_settings(SPAM_CLASSIFIER='alonetone.spam.AkismetClassifier', AKISMET_API_KEY='test-key')
    @patch('alonetone.spam.urllib_request.urlopen')
    def test_spam_report_failure_still_flags_comment(self, urlopen):
        urlopen.return_value.__enter__.return_value.read.side_effect = TimeoutError('timed out')
        comment = self.create_comment(self.asset, commenter=self.sudara, status=Comment.Status.HAM)
        self.authenticate(self.moderator)

        response = self.client.post(f'/comments/{comment.id}/spam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comment.refresh_from_db()
        self.assertEqual(comment.status, Comment.Status.SPAM)

    @patch('alonetone.spam.get_spam_classifier')
    def test_moderator_marks_comment_as_spam(self, get_classifier):
        comment = self.create_comment(self.asset, commenter=self.sudara, status=Comment.Status.HAM)
        self.authenticate(self.moderator)

        response = self.client.post(f'/comments/{comment.id}/spam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comment.refresh_from_db()
        self.assertEqual(comment.status, Comment.Status.SPAM)
        reported_comment, label = get_classifier.return_value.report_false_verdict.call_args[0]
        self.assertEqual(reported_comment.pk, comment.pk)
        self.assertEqual(label, SPAM)
        self.assertTrue(
            ModerationLog.objects.filter(moderator=self.moderator, action='comment.spam', entity_id=comment.id).exists()
        )

    @patch('alonetone.spam.get_spam_classifier')
    def test_moderator_marks_comment_as_ham(self, get_classifier):
        comment = self.create_comment(self.asset, status=Comment.Status.SPAM)
        self.authenticate(self.moderator)

        response = self.client.post(f'/comments/{comment.id}/unspam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comment.refresh_from_db()
        self.assertEqual(comment.status, Comment.Status.HAM)
        self.assertEqual(get_classifier.return_value.report_false_verdict.call_args[0][1], HAM)

    def test_comment_moderation_requires_moderator(self):
        comment = self.create_comment(self.asset)

        anonymous = self.client.post(f'/comments/{comment.id}/spam/', format='json')
        self.authenticate(self.arthur)
        owner = self.client.post(f'/comments/{comment.id}/destroy/', format='json')

        self.assertEqual(anonymous.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(owner.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(Comment.objects.filter(pk=comment.pk).exists())

    def test_destroy_deletes_comment(self):
        comment = self.create_comment(self.asset)
        self.authenticate(self.moderator)

        response = self.client.post(f'/comments/{comment.id}/destroy/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Comment.objects.filter(pk=comment.pk).exists())

    @patch('alonetone.spam.get_spam_classifier')
    def test_destroy_with_spam_flag_keeps_comment_as_spam(self, get_classifier):
        comment = self.create_comment(self.asset)
        self.authenticate(self.moderator)

        response = self.client.post(f'/comments/{comment.id}/destroy/', data={'spam': 'true'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comment.refresh_from_db()
        self.assertEqual(comment.status, Comment.Status.SPAM)
        get_classifier.return_value.report_false_verdict.assert_called_once()

    def test_spam_and_private_comments_only_visible_to_owner(self):
        self.create_comment(self.asset, body='public', status=Comment.Status.HAM)
        self.create_comment(self.asset, body='buy now', status=Comment.Status.SPAM)
        self.create_comment(self.asset, body='just for you', is_private=True)
        track_url = f'/arthur/tracks/{self.asset.permalink}/'

        anonymous = self.client.get(track_url)
        self.authenticate(self.arthur)
        owner = self.client.get(track_url)

        self.assertEqual([row['body'] for row in anonymous.data['asset']['comments']], ['public'])
        self.assertEqual(len(owner.data['asset']['comments']), 3)

    def test_recent_comments_include_spam_queue_for_moderators(self):
        self.create_comment(self.asset, body='public', status=Comment.Status.HAM)
        self.create_comment(self.asset, body='buy now', status=Comment.Status.SPAM)

        anonymous = self.client.get('/comments/')
        self.authenticate(self.moderator)
        moderator = self.client.get('/comments/')

        self.assertEqual(anonymous.data['total_count'], 1)
        self.assertNotIn('spam', anonymous.data)
        self.assertEqual(moderator.data['total_count'], 2)
        self.assertEqual([row['body'] for row in moderator.data['spam']], ['buy now'])

    def test_user_comments_lists_received_and_made(self):
        other_asset = self.create_asset(self.sudara, title='Other')
        self.create_comment(self.asset, commenter=self.sudara, body='received by arthur')
        self.create_comment(other_asset, commenter=self.arthur, body='made by arthur')

        response = self.client.get('/arthur/comments/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['body'] for row in response.data['received']['results']], ['received by arthur'])
        self.assertEqual([row['body'] for row in response.data['made']['results']], ['made by arthur'])


class SpamCascadeTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur')
        self.sudara = self.create_user('sudara')
        self.moderator = self.create_user('sandbag', role=User.Role.MODERATOR)
        self.asset = self.create_asset(self.arthur, title='Muppets')
        self.comment = self.create_comment(self.asset, commenter=self.sudara, status=Comment.Status.HAM)
        self.listen = Listen.objects.create(
            asset=self.asset,
            track_owner=self.arthur,
            ip='10.0.0.1',
            user_agent=BROWSER_UA,
            source=DIRECT_HIT,
        )

    def test_spamming_asset_hides_it_from_home_without_deleting(self):
        self.assertIn(str(self.asset.id), self.home_ids())
        self.authenticate(self.moderator)

        response = self.client.post(f'/arthur/tracks/{self.asset.permalink}/spam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn(str(self.asset.id), self.home_ids())
        self.asset.refresh_from_db()
        self.assertTrue(self.asset.is_spam)
        self.assertIsNotNone(self.asset.deleted_at)
        self.comment.refresh_from_db()
        self.listen.refresh_from_db()
        self.assertEqual(self.comment.deleted_at, self.asset.deleted_at)
        self.assertEqual(self.listen.deleted_at, self.asset.deleted_at)
        self.assertTrue(ModerationLog.objects.filter(action='asset.spam', entity_id=self.asset.id).exists())

    def test_unspam_restores_asset_and_dependents(self):
        AssetCommand(self.asset).spam_and_soft_delete_with_relations()
        self.authenticate(self.moderator)

        response = self.client.post(f'/arthur/tracks/{self.asset.permalink}/unspam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(str(self.asset.id), self.home_ids())
        self.comment.refresh_from_db()
        self.assertIsNone(self.comment.deleted_at)

    def test_track_spam_requires_moderator(self):
        self.authenticate(self.arthur)

        response = self.client.post(f'/arthur/tracks/{self.asset.permalink}/spam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.asset.refresh_from_db()
        self.assertFalse(self.asset.is_spam)

    def test_owner_delete_soft_deletes_track(self):
        self.authenticate(self.arthur)

        response = self.client.delete(f'/arthur/tracks/{self.asset.permalink}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Asset.objects.filter(pk=self.asset.pk, deleted_at__isnull=False).exists())
        self.assertNotIn(str(self.asset.id), self.home_ids())
        self.assertFalse(ModerationLog.objects.exists())

    def test_moderator_spams_user_through_moderation_endpoint(self):
        made = self.create_comment(self.create_asset(self.sudara, title='Other'), commenter=self.arthur)
        self.authenticate(self.moderator)

        response = self.client.post('/moderation/users/arthur/spam/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn(str(self.asset.id), self.home_ids())
        self.arthur.refresh_from_db()
        self.assertTrue(self.arthur.is_spam)
        self.assertTrue(Asset.objects.filter(pk=self.asset.pk).exists())
        made.refresh_from_db()
        self.assertEqual(made.status, Comment.Status.SPAM)
        self.assertIsNotNone(made.deleted_at)
        self.assertTrue(ModerationLog.objects.filter(action='user.spam', entity_id=self.arthur.id).exists())

    def test_restore_user_brings_back_everything_the_cascade_hid(self):
        made = self.create_comment(self.create_asset(self.sudara, title='Other'), commenter=self.arthur)
        UserCommand(self.arthur).spam_and_soft_delete_with_relations()
        self.authenticate(self.moderator)

        response = self.client.post('/moderation/users/arthur/restore/', format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(str(self.asset.id), self.home_ids())
        made.refresh_from_db()
        self.assertEqual(made.status, Comment.Status.HAM)
        self.assertIsNone(made.deleted_at)
        self.listen.refresh_from_db()
        self.assertIsNone(self.listen.deleted_at)

    def test_restore_keeps_comments_flagged_before_the_cascade(self):
        other = self.create_asset(self.sudara, title='Other')
        flagged = self.create_comment(other, commenter=self.arthur, status=Comment.Status.SPAM)
        cascaded = self.create_comment(other, commenter=self.arthur, status=Comment.Status.HAM)
        command = UserCommand(self.arthur)

        command.spam_and_soft_delete_with_relations()
        command.restore_with_relations()

        flagged.refresh_from_db()
        cascaded.refresh_from_db()
        self.assertEqual(flagged.status, Comment.Status.SPAM)
        self.assertEqual(cascaded.status, Comment.Status.HAM)
        self.assertIsNone(cascaded.deleted_at)

    def test_failed_cascade_changes_nothing(self):
        with patch('alonetone.commands.Listen') as listen_model:
            listen_model.objects.filter.return_value.update.side_effect = DatabaseError('lock timeout')
            with self.assertRaises(DatabaseError):
                UserCommand(self.arthur).spam_and_soft_delete_with_relations()

        self.arthur.refresh_from_db()
        self.asset.refresh_from_db()
        self.comment.refresh_from_db()
        self.listen.refresh_from_db()
        self.assertIsNone(self.arthur.deleted_at)
        self.assertFalse(self.arthur.is_spam)
        self.assertIsNone(self.asset.deleted_at)
        self.assertFalse(self.asset.is_spam)
        self.assertIsNone(self.comment.deleted_at)
        self.assertIsNone(self.listen.deleted_at)

    def test_restore_leaves_previously_deleted_asset_hidden(self):
        AssetCommand(self.asset).soft_delete_with_relations()
        Asset.objects.filter(pk=self.asset.pk).update(deleted_at=timezone.now() - timezone.timedelta(days=1))
        UserCommand(self.arthur).soft_delete_with_relations()

        UserCommand(self.arthur).restore_with_relations()

        self.asset.refresh_from_db()
        self.assertIsNotNone(self.asset.deleted_at)

    def test_soft_deleted_user_assets_leave_home(self):
        UserCommand(self.arthur).soft_delete_with_relations()

        self.assertNotIn(str(self.asset.id), self.home_ids())
        self.assertTrue(User.objects.filter(pk=self.arthur.pk).exists())

    def test_moderation_endpoints_are_gated(self):
        missing = self.client.post('/moderation/users/arthur/delete/', format='json')
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-real-token')
        invalid = self.client.post('/moderation/users/arthur/delete/', format='json')
        self.authenticate(self.sudara)
        forbidden = self.client.post('/moderation/users/arthur/delete/', format='json')

        self.assertEqual(missing.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(invalid.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)
        self.arthur.refresh_from_db()
        self.assertIsNone(self.arthur.deleted_at)


class PlaylistTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur')
        self.sudara = self.create_user('sudara')
        self.playlist = Playlist.objects.create(user=self.arthur, title='Sleepy Songs')
        self.detail_url = f'/arthur/playlists/{self.playlist.permalink}/'

    def add_tracks(self, count):
        for index in range(count):
            PlaylistTrack.objects.create(
                playlist=self.playlist,
                asset=self.create_asset(self.arthur, title=f'Track {index}'),
                position=index + 1,
            )

    def test_create_requires_owner(self):
        anonymous = self.client.post('/arthur/playlists/', data={'title': 'New'}, format='json')
        self.authenticate(self.sudara)
        stranger = self.client.post('/arthur/playlists/', data={'title': 'New'}, format='json')
        self.authenticate(self.arthur)
        owner = self.client.post('/arthur/playlists/', data={'title': 'New'}, format='json')

        self.assertEqual(anonymous.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(stranger.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(owner.status_code, status.HTTP_201_CREATED)
        self.assertTrue(owner.data['playlist']['is_private'])
        self.assertEqual(owner.data['playlist']['permalink'], 'new')

    def test_publish_refused_with_fewer_than_two_tracks(self):
        self.add_tracks(1)
        self.authenticate(self.arthur)

        response = self.client.patch(self.detail_url, data={'is_private': False}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['message'])
        self.playlist.refresh_from_db()
        self.assertTrue(self.playlist.is_private)
        self.assertFalse(self.playlist.published)
        self.assertIsNone(self.playlist.published_at)

    def test_publish_with_two_tracks_sets_published_at_once(self):
        self.add_tracks(2)
        self.authenticate(self.arthur)

        self.client.patch(self.detail_url, data={'is_private': False}, format='json')
        self.playlist.refresh_from_db()
        first_published_at = self.playlist.published_at
        self.client.patch(self.detail_url, data={'is_private': True}, format='json')
        self.client.patch(self.detail_url, data={'is_private': False}, format='json')

        self.playlist.refresh_from_db()
        self.assertTrue(self.playlist.published)
        self.assertFalse(self.playlist.is_private)
        self.assertIsNotNone(first_published_at)
        self.assertEqual(self.playlist.published_at, first_published_at)

    def test_spam_tracks_do_not_count_towards_publishing(self):
        self.add_tracks(2)
        Asset.objects.filter(title='Track 1').update(is_spam=True)

        self.assertFalse(self.playlist.set_privacy(False))

    def test_stranger_cannot_edit_playlist(self):
        self.add_tracks(2)
        self.authenticate(self.sudara)

        response = self.client.patch(self.detail_url, data={'is_private': False}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.playlist.refresh_from_db()
        self.assertFalse(self.playlist.published)

    def test_stranger_cannot_edit_published_playlist(self):
        self.add_tracks(2)
        self.playlist.set_privacy(False)
        self.playlist.save()
        self.authenticate(self.sudara)

        response = self.client.patch(self.detail_url, data={'title': 'Mine now'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_moderator_can_edit_any_playlist(self):
        self.authenticate(self.create_user('sandbag', role=User.Role.MODERATOR))

        response = self.client.patch(self.detail_url, data={'title': 'Renamed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.playlist.refresh_from_db()
        self.assertEqual(self.playlist.title, 'Renamed')

    def test_add_remove_and_sort_tracks(self):
        first = self.create_asset(self.arthur, title='First')
        second = self.create_asset(self.arthur, title='Second')
        self.authenticate(self.arthur)

        added_first = self.client.post(f'{self.detail_url}add_track/', data={'asset_id': str(first.id)}, format='json')
        added_second = self.client.post(f'{self.detail_url}add_track/', data={'asset_id': str(second.id)}, format='json')
        self.assertEqual(added_first.status_code, status.HTTP_201_CREATED)
        self.assertEqual(added_second.status_code, status.HTTP_201_CREATED)

        first_entry, second_entry = added_first.data['track']['id'], added_second.data['track']['id']
        sorted_response = self.client.post(
            f'{self.detail_url}sort_tracks/',
            data={'ids': [second_entry, first_entry]},
            format='json',
        )
        self.assertEqual(sorted_response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['asset']['title'] for row in sorted_response.data['playlist']['tracks']], ['Second', 'First'])

        removed = self.client.post(f'{self.detail_url}remove_track/', data={'track_id': first_entry}, format='json')
        self.assertEqual(removed.status_code, status.HTTP_200_OK)
        self.assertEqual(list(self.playlist.tracks.values_list('asset__title', flat=True)), ['Second'])

    def test_same_asset_can_be_added_twice(self):
        asset = self.create_asset(self.arthur, title='Loop')
        self.authenticate(self.arthur)

        for _ in range(2):
            self.client.post(f'{self.detail_url}add_track/', data={'asset_id': str(asset.id)}, format='json')

        self.assertEqual(self.playlist.tracks.filter(asset=asset).count(), 2)

    def test_sort_user_playlists(self):
        other = Playlist.objects.create(user=self.arthur, title='Loud Songs', position=5)
        self.authenticate(self.arthur)

        response = self.client.post(
            '/arthur/playlists/sort/',
            data={'ids': [str(other.id), str(self.playlist.id)]},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['title'] for row in response.data['results']], ['Loud Songs', 'Sleepy Songs'])

    def test_attach_pic_stores_cover_and_bumps_updated_at(self):
        before = timezone.now() - timezone.timedelta(hours=1)
        Playlist.objects.filter(pk=self.playlist.pk).update(updated_at=before)
        self.authenticate(self.arthur)

        response = self.client.post(
            f'{self.detail_url}attach_pic/',
            data={'cover_image': SimpleUploadedFile('cover.png', PNG_BYTES, content_type='image/png')},
            format='multipart',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.playlist.refresh_from_db()
        self.assertTrue(self.playlist.cover_image.name.startswith('playlist_covers/'))
        self.assertGreater(self.playlist.updated_at, before)
        self.assertTrue(response.data['playlist']['cover_image_url'])

    def test_attach_pic_rejects_non_images(self):
        self.authenticate(self.arthur)

        response = self.client.post(
            f'{self.detail_url}attach_pic/',
            data={'cover_image': SimpleUploadedFile('cover.exe', b'MZ', content_type='application/x-msdownload')},
            format='multipart',
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.playlist.refresh_from_db()
        self.assertFalse(self.playlist.cover_image)

    def test_cover_variant_endpoint(self):
        self.authenticate(self.arthur)

        known = self.client.get(f'{self.detail_url}cover/album/')
        unknown = self.client.get(f'{self.detail_url}cover/huge/')

        self.assertEqual(known.status_code, status.HTTP_200_OK)
        self.assertEqual(known.data['options']['resize_to_fill'][:2], [200, 200])
        self.assertEqual(unknown.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_is_hard_delete(self):
        self.add_tracks(2)
        self.authenticate(self.arthur)

        response = self.client.delete(self.detail_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Playlist.objects.filter(pk=self.playlist.pk).exists())
        self.assertFalse(PlaylistTrack.objects.exists())
        self.assertEqual(Asset.objects.count(), 2)

    def test_private_playlists_hidden_from_listing(self):
        published = Playlist.objects.create(user=self.arthur, title='Out Now')
        PlaylistTrack.objects.bulk_create(
            [PlaylistTrack(playlist=published, asset=self.create_asset(self.arthur, title=f'P{i}')) for i in range(2)]
        )
        published.set_privacy(False)
        published.save()

        response = self.client.get('/arthur/playlists/')

        self.assertEqual([row['title'] for row in response.data['results']], ['Out Now'])


class ImageVariantTests(APITestCase):
    def test_known_variants(self):
        self.assertEqual(VARIANTS['greenfield'], 1500)
        options = variant_options('small_avatar')
        self.assertEqual(options['resize_to_fill'], [48, 48, {'crop': 'centre'}])
        self.assertEqual(options['saver']['quality'], 68)

    def test_unknown_variant_raises(self):
        with self.assertRaises(ValueError):
            verify('gigantic')
        with self.assertRaises(ValueError):
            ImageVariant(None, variant='gigantic')

    def test_variant_without_attachment_has_no_url(self):
        self.assertIsNone(ImageVariant(None, variant='album').url)


class AuthorizationTests(AlonetoneTestCase):
    def test_can_edit_and_can_moderate(self):
        arthur = self.create_user('arthur')
        sudara = self.create_user('sudara')
        moderator = self.create_user('sandbag', role=User.Role.MODERATOR)
        asset = Asset.objects.create(user=arthur, title='Song')

        self.assertTrue(can_edit(arthur, asset))
        self.assertFalse(can_edit(sudara, asset))
        self.assertFalse(can_edit(None, asset))
        self.assertTrue(can_edit(moderator, asset))
        self.assertTrue(can_moderate(moderator))
        self.assertFalse(can_moderate(arthur))

    def test_blocked_moderator_cannot_moderate(self):
        moderator = self.create_user('sandbag', role=User.Role.MODERATOR, status=User.Status.BLOCKED)

        self.assertFalse(can_moderate(moderator))

    def test_expired_session_is_anonymous(self):
        arthur = self.create_user('arthur')
        session = self.authenticate(arthur)
        UserSession.objects.filter(pk=session.pk).update(access_expires_at=timezone.now() - timezone.timedelta(minutes=1))

        response = self.client.post('/arthur/playlists/', data={'title': 'New'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class HomeAndFollowTests(AlonetoneTestCase):
    def test_home_lists_latest_published_tracks(self):
        arthur = self.create_user('arthur')
        public = self.create_asset(arthur, title='Public')
        self.create_asset(arthur, title='Hidden', is_private=True)

        response = self.client.get('/?white=1')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data['results']], [str(public.id)])
        self.assertEqual(response.data['theme'], 'white')
        self.assertFalse(response.data['has_next'])
        self.assertEqual(self.client.get('/').data['theme'], 'dark')

    def test_home_paginates(self):
        arthur = self.create_user('arthur')
        for index in range(3):
            Asset.objects.create(user=arthur, title=f'Song {index}')

        response = self.client.get('/?page=2&page_size=2')

        self.assertEqual(response.data['page'], 2)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['count'], 1)
        self.assertTrue(response.data['has_previous'])

    def test_follow_toggles(self):
        arthur = self.create_user('arthur')
        sudara = self.create_user('sudara')
        self.authenticate(sudara)

        followed = self.client.post('/arthur/follow/', format='json')
        unfollowed = self.client.post('/arthur/follow/', format='json')

        self.assertTrue(followed.data['following'])
        self.assertFalse(unfollowed.data['following'])
        self.assertFalse(Follow.objects.filter(follower=sudara, followee=arthur).exists())

    def test_owner_updates_track(self):
        arthur = self.create_user('arthur')
        asset = self.create_asset(arthur, title='Draft')
        self.authenticate(arthur)

        response = self.client.patch(
            f'/arthur/tracks/{asset.permalink}/',
            data={'title': 'Final  Mix', 'is_private': True},
            format='json',
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        asset.refresh_from_db()
        self.assertEqual(asset.title, 'Final Mix')
        self.assertTrue(asset.is_private)


class BackgroundTaskTests(AlonetoneTestCase):
    def setUp(self):
        super().setUp()
        self.arthur = self.create_user('arthur', display_name='Arthur')
        self.asset = self.create_asset(self.arthur, title='Muppets')

    def test_compute_peaks(self):
        self.assertEqual(compute_peaks(array.array('h', [0, 16384, -32768, 0]), points=2), [0.5, 1.0])
        self.assertEqual(compute_peaks(array.array('h')), [])

    @patch('alonetone.tasks.subprocess.run')
    def test_extract_waveform_stores_peaks(self, run):
        run.return_value = MagicMock(returncode=0, stdout=array.array('h', [0, 16384, -16384, 8192]).tobytes())

        result = extract_waveform(str(self.asset.id))

        self.assertEqual(result, 4)
        self.asset.refresh_from_db()
        self.assertEqual(self.asset.waveform, [0.0, 0.5, 0.5, 0.25])

    @patch('alonetone.tasks.subprocess.run', side_effect=FileNotFoundError)
    def test_extract_waveform_without_ffmpeg(self, run):
        self.assertIsNone(extract_waveform(str(self.asset.id)))
        self.asset.refresh_from_db()
        self.assertIsNone(self.asset.waveform)

    def test_notify_follower_sends_email(self):
        follower = self.create_user('sudara')

        self.assertTrue(notify_follower_of_upload(str(self.asset.id), str(follower.id)))

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['sudara@alonetone.test'])
        self.assertIn('Muppets', mail.outbox[0].body)

    def test_notify_skips_private_tracks(self):
        follower = self.create_user('sudara')
        Asset.objects.filter(pk=self.asset.pk).update(is_private=True)

        self.assertFalse(notify_follower_of_upload(str(self.asset.id), str(follower.id)))
        self.assertEqual(len(mail.outbox), 0)


class SeedDataCommandTests(APITestCase):
    def test_creates_moderator_with_token(self):
        output = io.StringIO()

        call_command('seed_data', 'Sandbag@alonetone.test', '--login', 'sandbag', '--moderator', stdout=output)

        user = User.objects.get(email='sandbag@alonetone.test')
        self.assertEqual(user.login, 'sandbag')
        self.assertEqual(user.role, User.Role.MODERATOR)
        session = UserSession.objects.get(user=user)
        self.assertIn(session.access_token, output.getvalue())
