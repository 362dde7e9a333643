import array
import logging
import os
import subprocess
import tempfile

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from .models import Asset, User

logger = logging.getLogger(__name__)

WAVEFORM_POINTS = 500
WAVEFORM_SAMPLE_RATE = 8000


def compute_peaks(samples, points=WAVEFORM_POINTS):
    """Reduce signed 16-bit ``samples`` to ``points`` peaks scaled to 0..1."""
    if not samples:
        return []
    bucket_size = max(len(samples) // points, 1)
    peaks = []
    for start in range(0, len(samples), bucket_size):
        bucket = samples[start:start + bucket_size]
        peaks.append(round(max(abs(value) for value in bucket) / 32768, 4))
        if len(peaks) == points:
            break
    return peaks


def _decode_to_pcm(input_path):
    command = [
        'ffmpeg',
        '-v',
        'error',
        '-i',
        input_path,
        '-ac',
        '1',
        '-ar',
        str(WAVEFORM_SAMPLE_RATE),
        '-f',
        's16le',
        '-',
    ]
    result = subprocess.run(command, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    if result.returncode != 0:
        raise RuntimeError(result.stderr.decode('utf-8', 'replace').strip() or 'ffmpeg failed')
    samples = array.array('h')
    usable = len(result.stdout) - (len(result.stdout) % samples.itemsize)
    samples.frombytes(result.stdout[:usable])
    return samples


@shared_task
def extract_waveform(asset_id):
    asset = Asset.objects.filter(pk=asset_id).first()
    if asset is None or not asset.audio_file:
        logger.info('Waveform skipped, asset %s has no audio', asset_id)
        return None

    suffix = os.path.splitext(asset.audio_file.name)[1] or '.mp3'
    input_path = ''
    try:
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as source_file:
            with asset.audio_file.open('rb') as audio:
                for chunk in audio.chunks():
                    source_file.write(chunk)
            input_path = source_file.name
        samples = _decode_to_pcm(input_path)
    except FileNotFoundError:
        logger.warning('ffmpeg is not installed; waveform for asset %s not generated', asset_id)
        return None
    finally:
        if input_path and os.path.exists(input_path):
            try:
                os.remove(input_path)
            except OSError:
                pass

    peaks = compute_peaks(samples)
    Asset.objects.filter(pk=asset.pk).update(waveform=peaks)
    logger.info('Stored %s waveform points for asset %s', len(peaks), asset_id)
    return len(peaks)


@shared_task
def notify_follower_of_upload(asset_id, follower_id):
    asset = Asset.objects.select_related('user').filter(pk=asset_id, deleted_at__isnull=True).first()
    follower = User.objects.visible().filter(pk=follower_id).first()
    if asset is None or follower is None or not follower.email:
        return False
    if asset.is_private:
        return False

    uploader = asset.user
    subject = f'[alonetone] {uploader.name} uploaded a new track'
    body = (
        f'{uploader.name} just uploaded "{asset.title}".\n\n'
        f'Listen here: {settings.SITE_URL}/{uploader.login}/tracks/{asset.permalink}\n\n'
        'You are receiving this because you follow them on alonetone.'
    )
    send_mail(
        subject=subject,
        message=body,
        from_email=getattr(settings, 'DEFAULT_FROM_EMAIL', 'music@alonetone.com'),
        recipient_list=[follower.email],
        fail_silently=False,
    )
    return True
