import io
import logging
import mimetypes
import os
import zipfile
import zlib
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone
from mutagen import File as MutagenFile

from .models import Asset, Playlist, PlaylistTrack
from .tasks import extract_waveform, notify_follower_of_upload

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {'.mp3', '.m4a', '.aac', '.ogg', '.oga', '.opus', '.flac', '.wav', '.aif', '.aiff'}
ZIP_CONTENT_TYPES = {'application/zip', 'application/x-zip', 'application/x-zip-compressed', 'multipart/x-zip'}
ZIP_MAGIC = b'PK\x03\x04'
# Bad CRCs, truncated data, encryption and unsupported compression methods.
ZIP_MEMBER_ERRORS = (zipfile.BadZipFile, zlib.error, RuntimeError, NotImplementedError, EOFError)
TITLE_TAG_KEYS = ('title', 'TIT2', '\xa9nam', 'TITLE')
ALBUM_TAG_KEYS = ('album', 'TALB', '\xa9alb', 'ALBUM')


class UploadLimitExceeded(Exception):
    pass


class InvalidAudioFile(ValueError):
    pass


class SourceFetchError(Exception):
    pass


class AudioCandidate:
    def __init__(self, name, content, content_type='', origin=''):
        self.name = name
        self.content = content
        self.content_type = content_type or mimetypes.guess_type(name)[0] or ''
        self.origin = origin or name

    @property
    def extension(self):
        return os.path.splitext(self.name)[1].lower()

    def open(self):
        buffer = io.BytesIO(self.content)
        # mutagen scores formats partly by file name.
        buffer.name = self.name
        return buffer


class IngestResult:
    def __init__(self):
        self.assets = []
        self.playlist = None
        self.errors = []

    def add_error(self, source, detail):
        self.errors.append({'source': source, 'detail': detail})


def _max_upload_bytes():
    return getattr(settings, 'MAX_UPLOAD_SIZE_MB', 200) * 1024 * 1024


def upload_limit_message():
    limit = getattr(settings, 'NEW_USER_UPLOAD_LIMIT', 25)
    return f'To prevent abuse, new users are limited to {limit} uploads in their first day. Come back tomorrow!'


def upload_limit_reached(user) -> bool:
    window = timezone.timedelta(hours=getattr(settings, 'NEW_USER_WINDOW_HOURS', 24))
    if user.created_at <= timezone.now() - window:
        return False
    return Asset.objects.filter(user=user).count() >= getattr(settings, 'NEW_USER_UPLOAD_LIMIT', 25)


def sanitize_filename_title(filename: str) -> str:
    base = os.path.basename((filename or '').replace('\\', '/'))
    stem = os.path.splitext(base)[0].replace('_', ' ')
    return ' '.join(stem.split())


def _first_tag(tags, keys):
    if not tags:
        return ''
    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError):
            continue
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ''
        frame_text = getattr(value, 'text', None)
        if frame_text is not None:
            value = frame_text[0] if frame_text else ''
        value = str(value).strip()
        if value:
            return value
    return ''


def read_audio_metadata(candidate):
    try:
        audio = MutagenFile(candidate.open(), easy=True)
    except Exception as exc:
        raise InvalidAudioFile(f'{candidate.name} is not a readable audio file.') from exc
    if audio is None or getattr(audio, 'info', None) is None:
        raise InvalidAudioFile(f'{candidate.name} is not a supported audio file.')
    length = getattr(audio.info, 'length', None)
    return {
        'title': _first_tag(audio.tags, TITLE_TAG_KEYS),
        'album': _first_tag(audio.tags, ALBUM_TAG_KEYS),
        'length': float(length) if length else None,
    }


def candidate_from_upload(uploaded_file):
    if uploaded_file.size > _max_upload_bytes():
        raise SourceFetchError(f'{uploaded_file.name} is larger than {settings.MAX_UPLOAD_SIZE_MB}MB.')
    content = b''.join(uploaded_file.chunks())
    return AudioCandidate(
        os.path.basename(uploaded_file.name),
        content,
        (getattr(uploaded_file, 'content_type', '') or '').lower(),
    )


def fetch_remote_source(url):
    parsed = urllib_parse.urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise SourceFetchError(f'{url} is not an http(s) URL.')

    max_bytes = _max_upload_bytes()
    timeout = getattr(settings, 'REMOTE_FETCH_TIMEOUT_SECONDS', 30)
    try:
        with urllib_request.urlopen(url, timeout=timeout) as response:
            content = response.read(max_bytes + 1)
            content_type = response.headers.get_content_type() if response.headers else ''
    except (OSError, ValueError) as exc:
        raise SourceFetchError(f'Could not download {url}.') from exc

    if len(content) > max_bytes:
        raise SourceFetchError(f'{url} is larger than {settings.MAX_UPLOAD_SIZE_MB}MB.')
    filename = os.path.basename(urllib_parse.unquote(parsed.path)) or 'download'
    return AudioCandidate(filename, content, (content_type or '').lower(), origin=url)


def is_zip(candidate) -> bool:
    if candidate.extension == '.zip' or candidate.content_type in ZIP_CONTENT_TYPES:
        return True
    return candidate.content[:4] == ZIP_MAGIC


def expand_zip(candidate, result):
    try:
        archive = zipfile.ZipFile(io.BytesIO(candidate.content))
    except zipfile.BadZipFile as exc:
        raise InvalidAudioFile(f'{candidate.name} is not a valid ZIP archive.') from exc

    members = []
    max_bytes = _max_upload_bytes()
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            parts = info.filename.split('/')
            base = parts[-1]
            if not base or base.startswith('.') or '__MACOSX' in parts:
                continue
            if os.path.splitext(base)[1].lower() not in AUDIO_EXTENSIONS:
                continue
            if info.file_size > max_bytes:
                logger.info('Skipping oversized ZIP member %s in %s', info.filename, candidate.name)
                continue
            origin = f'{candidate.origin}:{info.filename}'
            try:
                content = archive.read(info)
            except ZIP_MEMBER_ERRORS as exc:
                logger.info('Skipping unreadable ZIP member %s: %s', origin, exc)
                result.add_error(origin, f'{info.filename} could not be extracted from {candidate.name}.')
                continue
            members.append(AudioCandidate(base, content, origin=origin))
    return members


def _collect_candidates(files, urls, result):
    candidates = []
    zip_names = []
    sources = [('file', uploaded) for uploaded in files] + [('url', url) for url in urls]
    for kind, source in sources:
        label = source.name if kind == 'file' else source
        try:
            candidate = candidate_from_upload(source) if kind == 'file' else fetch_remote_source(source)
        except SourceFetchError as exc:
            logger.warning('Upload source %s failed: %s', label, exc)
            result.add_error(label, str(exc))
            continue

        if not is_zip(candidate):
            candidates.append(candidate)
            continue
        try:
            members = expand_zip(candidate, result)
        except InvalidAudioFile as exc:
            result.add_error(label, str(exc))
            continue
        zip_names.append(candidate.name)
        candidates.extend(members)
    return candidates, zip_names


def _album_title(zip_names, validated):
    if len(zip_names) == 1:
        title = sanitize_filename_title(zip_names[0])
        if title:
            return title
    for _, metadata in validated:
        if metadata['album']:
            return metadata['album']
    return f'Upload {timezone.now():%Y-%m-%d}'


def _build_asset(user, candidate, metadata):
    title = metadata['title'] or sanitize_filename_title(candidate.name) or 'untitled'
    asset = Asset(
        user=user,
        title=title[:255],
        original_filename=candidate.name[:255],
        content_type=candidate.content_type[:100],
        file_size=len(candidate.content),
        length_seconds=metadata['length'],
    )
    asset.audio_file.save(candidate.name, ContentFile(candidate.content), save=False)
    asset.save()
    return asset


def _create_album(user, assets, title):
    playlist = Playlist.objects.create(user=user, title=title[:255], is_private=True)
    PlaylistTrack.objects.bulk_create(
        [
            PlaylistTrack(playlist=playlist, asset=asset, position=index)
            for index, asset in enumerate(assets, start=1)
        ]
    )
    return playlist


def enqueue_post_upload_jobs(asset_ids, follower_ids):
    # Enqueue failures are logged, never raised.
    for asset_id in asset_ids:
        try:
            extract_waveform.delay(str(asset_id))
        except Exception:
            logger.exception('Could not enqueue waveform extraction for asset %s', asset_id)
        for follower_id in follower_ids:
            try:
                notify_follower_of_upload.delay(str(asset_id), str(follower_id))
            except Exception:
                logger.exception('Could not enqueue notification of asset %s for %s', asset_id, follower_id)


def ingest(user, *, files=(), urls=()):
    """Create assets for every valid audio file found in ``files`` and ``urls``.

    Raises UploadLimitExceeded before touching any source when ``user`` is a
    new account over its upload allowance. Bad sources or archive members are
    reported in ``result.errors`` and do not stop the rest of the batch.
    """
    if upload_limit_reached(user):
        raise UploadLimitExceeded(upload_limit_message())

    result = IngestResult()
    candidates, zip_names = _collect_candidates(list(files), list(urls), result)

    validated = []
    for candidate in candidates:
        try:
            metadata = read_audio_metadata(candidate)
        except InvalidAudioFile as exc:
            logger.info('Skipping %s: %s', candidate.origin, exc)
            result.add_error(candidate.origin, str(exc))
            continue
        validated.append((candidate, metadata))

    if not validated:
        return result

    stored_paths = []
    follower_ids = user.follower_ids()
    try:
        with transaction.atomic():
            for candidate, metadata in validated:
                asset = _build_asset(user, candidate, metadata)
                stored_paths.append(asset.audio_file.name)
                result.assets.append(asset)
            if len(result.assets) > 1:
                result.playlist = _create_album(user, result.assets, _album_title(zip_names, validated))
            asset_ids = [asset.id for asset in result.assets]
            transaction.on_commit(lambda: enqueue_post_upload_jobs(asset_ids, follower_ids))
    except Exception:
        for path in stored_paths:
            try:
                default_storage.delete(path)
            except OSError:
                logger.warning('Could not clean up stored upload %s', path)
        raise

    logger.info(
        'User %s uploaded %s asset(s)%s',
        user.login,
        len(result.assets),
        f' into playlist {result.playlist.permalink}' if result.playlist else '',
    )
    return result


def replace_audio(asset, uploaded_file):
    """Swap the audio attachment of an existing asset and re-run its waveform."""
    candidate = candidate_from_upload(uploaded_file)
    metadata = read_audio_metadata(candidate)
    old_path = asset.audio_file.name if asset.audio_file else ''
    asset.audio_file.save(candidate.name, ContentFile(candidate.content), save=False)
    asset.original_filename = candidate.name[:255]
    asset.content_type = candidate.content_type[:100]
    asset.file_size = len(candidate.content)
    asset.length_seconds = metadata['length']
    asset.waveform = None
    asset.save()
    if old_path:
        transaction.on_commit(lambda: default_storage.delete(old_path))
    asset_id = asset.id
    transaction.on_commit(lambda: enqueue_post_upload_jobs([asset_id], []))
    return asset
