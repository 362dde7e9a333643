from pathlib import Path
import os

import dj_database_url
from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'on'}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str = '') -> list:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(',') if item.strip()]


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key')
DEBUG = _env_bool('DJANGO_DEBUG', default=True)

ALLOWED_HOSTS = _env_list('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver')

CORS_ALLOWED_ORIGINS = _env_list('CORS_ALLOWED_ORIGINS', 'https://alonetone.com')
CORS_ALLOW_CREDENTIALS = True
CSRF_TRUSTED_ORIGINS = _env_list('CSRF_TRUSTED_ORIGINS', 'https://alonetone.com')


INSTALLED_APPS = [
    'corsheaders',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'alonetone',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'alonetone.middleware.ModerationAccessMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'core.wsgi.application'
ASGI_APPLICATION = 'core.asgi.application'

DATABASES = {
    'default': dj_database_url.config(
        default=os.environ.get('DATABASE_URL') or f'sqlite:///{BASE_DIR / "db.sqlite3"}',
        conn_max_age=_env_int('DATABASE_CONN_MAX_AGE', 0),
    )
}

REST_FRAMEWORK = {
    # Bearer sessions are resolved per view, see alonetone.authorization.
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = BASE_DIR / 'media'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.getenv('DJANGO_LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'alonetone': {
            'handlers': ['console'],
            'level': os.getenv('ALONETONE_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

# Listen counting
LISTEN_DEDUP_WINDOW_MINUTES = _env_int('LISTEN_DEDUP_WINDOW_MINUTES', 5)
LISTEN_BOT_USER_AGENTS = _env_list(
    'LISTEN_BOT_USER_AGENTS',
    'bot,spider,crawl,slurp,nutch,baidu,facebookexternalhit,wget,curl',
)

# Uploads
NEW_USER_UPLOAD_LIMIT = _env_int('NEW_USER_UPLOAD_LIMIT', 25)
NEW_USER_WINDOW_HOURS = _env_int('NEW_USER_WINDOW_HOURS', 24)
MAX_UPLOAD_SIZE_MB = _env_int('MAX_UPLOAD_SIZE_MB', 200)
REMOTE_FETCH_TIMEOUT_SECONDS = _env_int('REMOTE_FETCH_TIMEOUT_SECONDS', 30)
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024

# Playlists
PLAYLIST_MIN_TRACKS_TO_PUBLISH = _env_int('PLAYLIST_MIN_TRACKS_TO_PUBLISH', 2)

# Spam classification (Akismet)
AKISMET_API_KEY = os.getenv('AKISMET_API_KEY', '').strip()
AKISMET_BLOG_URL = os.getenv('AKISMET_BLOG_URL', 'https://alonetone.com').strip()
SPAM_CLASSIFIER = os.getenv(
    'SPAM_CLASSIFIER',
    'alonetone.spam.AkismetClassifier' if AKISMET_API_KEY else 'alonetone.spam.NullClassifier',
).strip()

# Background jobs
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'memory://')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND') or None
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', default=False)
CELERY_TASK_IGNORE_RESULT = True
CELERY_TIMEZONE = TIME_ZONE

SITE_URL = os.getenv('SITE_URL', 'https://alonetone.com').rstrip('/')

# Session tokens issued by `manage.py seed_data`
USER_ACCESS_TOKEN_TTL_DAYS = _env_int('USER_ACCESS_TOKEN_TTL_DAYS', 30)

# Email delivery (follower notifications)
EMAIL_BACKEND = os.getenv(
    'EMAIL_BACKEND',
    'django.core.mail.backends.console.EmailBackend',
).strip()
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'no-reply@alonetone.com').strip()
EMAIL_HOST = os.getenv('EMAIL_HOST', '').strip()
EMAIL_PORT = _env_int('EMAIL_PORT', 587)
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '').strip()
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '').strip()
EMAIL_USE_TLS = _env_bool('EMAIL_USE_TLS', default=True)
EMAIL_USE_SSL = _env_bool('EMAIL_USE_SSL', default=False)
