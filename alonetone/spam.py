import http.client
import logging
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

HAM = 'ham'
SPAM = 'spam'
VERDICTS = (HAM, SPAM)


class ClassifierError(Exception):
    pass


class SpamClassifier:
    def classify(self, text, metadata):
        """Return ``HAM`` or ``SPAM`` for ``text``."""
        raise NotImplementedError

    def report_false_verdict(self, comment, correct_label):
        """Tell the classifier it got ``comment`` wrong."""
        raise NotImplementedError


class NullClassifier(SpamClassifier):
    def classify(self, text, metadata):
        return HAM

    def report_false_verdict(self, comment, correct_label):
        logger.debug('Ignoring %s report for comment %s', correct_label, comment.pk)


class AkismetClassifier(SpamClassifier):
    API_VERSION = '1.1'
    TIMEOUT_SECONDS = 10

    def __init__(self, api_key=None, blog_url=None):
        self.api_key = (api_key or getattr(settings, 'AKISMET_API_KEY', '') or '').strip()
        self.blog_url = (blog_url or getattr(settings, 'AKISMET_BLOG_URL', '') or '').strip()
        if not self.api_key:
            raise ClassifierError('AKISMET_API_KEY is not configured.')

    def _endpoint(self, method):
        return f'https://{self.api_key}.rest.akismet.com/{self.API_VERSION}/{method}'

    def _post(self, method, params):
        payload = {'blog': self.blog_url, 'comment_type': 'comment'}
        payload.update({key: value for key, value in params.items() if value})
        body = urllib_parse.urlencode(payload).encode('utf-8')
        req = urllib_request.Request(
            self._endpoint(method),
            data=body,
            headers={
                'Content-Type': 'application/x-www-form-urlencoded',
                'User-Agent': 'alonetone | akismet/1.1',
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.TIMEOUT_SECONDS) as response:
                return response.read().decode('utf-8').strip(), response.headers
        except (OSError, http.client.HTTPException, UnicodeDecodeError) as exc:
            raise ClassifierError(f'Akismet {method} request failed.') from exc

    @staticmethod
    def _params(text, metadata):
        metadata = metadata or {}
        return {
            'user_ip': metadata.get('remote_ip'),
            'user_agent': metadata.get('user_agent'),
            'referrer': metadata.get('referrer'),
            'permalink': metadata.get('permalink'),
            'comment_author': metadata.get('author'),
            'comment_content': text,
        }

    def classify(self, text, metadata):
        body, headers = self._post('comment-check', self._params(text, metadata))
        if body == 'true':
            return SPAM
        if body == 'false':
            return HAM
        debug_help = headers.get('X-akismet-debug-help') if headers else None
        raise ClassifierError(f'Unexpected Akismet response: {body!r} {debug_help or ""}'.strip())

    def report_false_verdict(self, comment, correct_label):
        if correct_label not in VERDICTS:
            raise ValueError(f'Unknown verdict: {correct_label}')
        method = 'submit-spam' if correct_label == SPAM else 'submit-ham'
        self._post(method, self._params(comment.body, comment_metadata(comment)))


def comment_metadata(comment):
    commenter = comment.commenter
    return {
        'remote_ip': comment.remote_ip,
        'user_agent': comment.user_agent,
        'referrer': comment.referrer,
        'author': commenter.login if commenter else None,
        'permalink': f'/{comment.user.login}/tracks/{comment.commentable.permalink}',
    }


def get_spam_classifier():
    path = getattr(settings, 'SPAM_CLASSIFIER', '') or 'alonetone.spam.NullClassifier'
    return import_string(path)()


def classify_comment(comment):
    """Run ``comment`` through the classifier; None when it could not be judged."""
    try:
        verdict = get_spam_classifier().classify(comment.body, comment_metadata(comment))
    except ClassifierError:
        logger.warning('Spam classification failed for comment %s', comment.pk, exc_info=True)
        return None
    if verdict not in VERDICTS:
        logger.warning('Classifier returned unknown verdict %r for comment %s', verdict, comment.pk)
        return None
    return verdict


def report_comment(comment, correct_label):
    try:
        get_spam_classifier().report_false_verdict(comment, correct_label)
    except ClassifierError:
        logger.warning('Could not report %s verdict for comment %s', correct_label, comment.pk, exc_info=True)
