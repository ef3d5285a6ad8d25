import os
from pathlib import Path
from datetime import timedelta

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

# Load .env if present. Force override to avoid leaked shell env overriding local file during dev.
load_dotenv(BASE_DIR / ".env", override=True)

# ======== CRITICAL SECURITY SETTINGS ========
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret")
if SECRET_KEY == "dev-insecure-secret" and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("DJANGO_SECRET_KEY must be set with a secure value in production!")

DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
if DEBUG and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("DEBUG mode is not allowed in production! Set DJANGO_DEBUG=0")

ALLOWED_HOSTS = os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")
if "*" in ALLOWED_HOSTS and os.getenv("ENVIRONMENT") == "production":
    raise ValueError("ALLOWED_HOSTS must be specified in production! Do not use '*'")

LANGUAGE_CODE = os.getenv("DJANGO_LANGUAGE_CODE", "en-us")
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "Africa/Accra")
USE_I18N = True
USE_TZ = True

API_PREFIX = "/api-dj"


def _env_flag(name: str, default: str = "0") -> bool:
    """Normalize boolean-ish environment flags (1/true/on/y/yes)."""
    value = os.getenv(name, default)
    if value is None:
        return False
    return str(value).strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_list(name: str, default: str) -> list:
    return [part.strip().upper() for part in os.getenv(name, default).split(",") if part.strip()]


INSTALLED_APPS = [
    "jazzmin",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "corsheaders",
    "drf_spectacular",
    "django_celery_results",
    "django_celery_beat",
    "apps.core",
    "apps.providers",
    "apps.orders",
    "apps.notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "apps.core.middleware.RequestLogMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRES_DB", "bundlehub"),
        "USER": os.getenv("POSTGRES_USER", "bundlehub"),
        "PASSWORD": os.getenv("POSTGRES_PASSWORD", "changeme"),
        "HOST": os.getenv("POSTGRES_HOST", "localhost"),
        "PORT": os.getenv("POSTGRES_PORT", "5432"),
        "OPTIONS": {
            "options": "-c search_path=public,pg_catalog",
        },
    }
}

# Shared cache; also holds the run-in-progress flags of the periodic jobs
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0"),
    }
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MIN", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "7"))),
    "SIGNING_KEY": os.getenv("JWT_SECRET", SECRET_KEY),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

SPECTACULAR_SETTINGS = {
    "TITLE": "BundleHub API",
    "DESCRIPTION": "Bundle order dispatch and provider reconciliation under /api-dj",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOWED_ORIGINS = [o for o in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",") if o]
CSRF_TRUSTED_ORIGINS = CORS_ALLOWED_ORIGINS

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "static"
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

JAZZMIN_SETTINGS = {
    "site_title": "BundleHub Admin",
    "site_header": "BundleHub Admin",
    "site_brand": "BundleHub",
}

# ============================================================================
# FULFILLMENT PROVIDERS
# ============================================================================
# Credentials and lookup tables per provider; missing keys use the adapter's defaults.
PROVIDERS = {
    "jaybart": {
        "base_url": os.getenv("JAYBART_BASE_URL"),
        "api_key": os.getenv("JAYBART_API_KEY"),
        "completes_on_push": _env_flag("JAYBART_COMPLETES_ON_PUSH", "0"),
    },
    "codecraft": {
        "base_url": os.getenv("CODECRAFT_BASE_URL"),
        "api_key": os.getenv("CODECRAFT_API_KEY"),
        "client_email": os.getenv("CODECRAFT_CLIENT_EMAIL"),
        "completes_on_push": _env_flag("CODECRAFT_COMPLETES_ON_PUSH", "0"),
    },
    "jesco": {
        "base_url": os.getenv("JESCO_BASE_URL"),
        "api_key": os.getenv("JESCO_API_KEY"),
        "completes_on_push": _env_flag("JESCO_COMPLETES_ON_PUSH", "0"),
    },
    "easydata": {
        "base_url": os.getenv("EASYDATA_BASE_URL"),
        "username": os.getenv("EASYDATA_USERNAME"),
        "password": os.getenv("EASYDATA_PASSWORD"),
        "completes_on_push": _env_flag("EASYDATA_COMPLETES_ON_PUSH", "0"),
    },
}

# Network -> providers in priority order; dispatch takes the first enabled one.
NETWORK_PROVIDERS = {
    "MTN": ["jaybart", "jesco", "easydata"],
    "TELECEL": ["codecraft"],
    "ISHARE": ["codecraft"],
    "BIGTIME": ["codecraft"],
}

# Used when no ProviderSetting row exists yet
PROVIDER_DEFAULT_ENABLED = {
    "jaybart": _env_flag("JAYBART_ENABLED", "1"),
    "codecraft": _env_flag("CODECRAFT_ENABLED", "1"),
    "jesco": _env_flag("JESCO_ENABLED", "0"),
    "easydata": _env_flag("EASYDATA_ENABLED", "0"),
}

# Networks whose providers never report completion; their open orders are
# force-completed after the threshold.
STALE_FALLBACK_NETWORKS = _env_list("STALE_FALLBACK_NETWORKS", "TELECEL,BIGTIME")
STALE_ORDER_THRESHOLD_MINUTES = int(os.getenv("STALE_ORDER_THRESHOLD_MINUTES", "30"))

RECONCILE_INTERVAL_SECONDS = int(os.getenv("RECONCILE_INTERVAL_SECONDS", "60"))
STALE_ORDER_INTERVAL_SECONDS = int(os.getenv("STALE_ORDER_INTERVAL_SECONDS", "300"))
RECONCILE_BATCH_SIZE = int(os.getenv("RECONCILE_BATCH_SIZE", "200"))
# at most the hard time_limit of the periodic tasks in apps/orders/tasks.py
RUN_LOCK_TTL_SECONDS = int(os.getenv("RUN_LOCK_TTL_SECONDS", "300"))

ORDERS_ASYNC_DISPATCH = _env_flag("ORDERS_ASYNC_DISPATCH", "1")

# ============================================================================
# NOTIFICATIONS
# ============================================================================
SMS_BACKEND = os.getenv("SMS_BACKEND", "logging")
SMS_WEBHOOK_URL = os.getenv("SMS_WEBHOOK_URL", "")
SMS_WEBHOOK_TOKEN = os.getenv("SMS_WEBHOOK_TOKEN", "")
SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "BundleHub")
NOTIFICATION_CURRENCY = os.getenv("NOTIFICATION_CURRENCY", "GHS")

# ============================================================================
# CELERY CONFIGURATION
# ============================================================================
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = 'django-db'
CELERY_CACHE_BACKEND = 'default'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 30 * 60
CELERY_TASK_SOFT_TIME_LIMIT = 25 * 60
CELERY_TASK_ALWAYS_EAGER = _env_flag("CELERY_TASK_ALWAYS_EAGER", "0")
CELERY_TASK_EAGER_PROPAGATES = True

# Celery Beat (Periodic Tasks); the DatabaseScheduler picks these up on start
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'
CELERY_BEAT_SCHEDULE = {
    'reconcile-order-statuses': {
        'task': 'apps.orders.tasks.reconcile_order_statuses',
        'schedule': timedelta(seconds=RECONCILE_INTERVAL_SECONDS),
        'options': {'expires': RECONCILE_INTERVAL_SECONDS},
    },
    'complete-stale-orders': {
        'task': 'apps.orders.tasks.complete_stale_orders',
        'schedule': timedelta(seconds=STALE_ORDER_INTERVAL_SECONDS),
        'options': {'expires': STALE_ORDER_INTERVAL_SECONDS},
    },
}

# ============================================================================
# CRITICAL SECURITY SETTINGS FOR PRODUCTION
# ============================================================================
if not DEBUG and os.getenv("ENVIRONMENT") == "production":
    SECURE_SSL_REDIRECT = True
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'SAMEORIGIN'

CSRF_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_HTTPONLY = True
CSRF_COOKIE_SAMESITE = 'Lax'

SESSION_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'
SESSION_COOKIE_AGE = 86400

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LOG_DIR = Path(os.getenv("LOG_DIR", BASE_DIR / 'logs'))

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {asctime} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'orders_file': {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'orders.log',
            'maxBytes': 1024 * 1024 * 10,  # 10MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
        'security_file': {
            'level': 'WARNING',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'security.log',
            'maxBytes': 1024 * 1024 * 10,  # 10MB
            'backupCount': 5,
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.getenv('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'apps.orders': {
            'handlers': ['orders_file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps.providers': {
            'handlers': ['orders_file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps.notifications': {
            'handlers': ['orders_file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'request': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.security': {
            'handlers': ['security_file', 'console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'django.request': {
            'handlers': ['security_file', 'console'],
            'level': 'ERROR',
            'propagate': False,
        },
    },
}

LOG_DIR.mkdir(parents=True, exist_ok=True)
