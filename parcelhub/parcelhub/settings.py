"""
Django settings for parcelhub project.

Deployment knobs come from environment variables; everything else is fixed here.
"""

import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'insecure-dev-key-change-me')

DEBUG = os.environ.get('DJANGO_DEBUG', 'true').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if host]


INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'rest_framework',
    'django_filters',
    'forwarding',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
]

ROOT_URLCONF = 'parcelhub.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
            ],
        },
    },
]

WSGI_APPLICATION = 'parcelhub.wsgi.application'


# Database
# PostgreSQL is expected in production (row locks back the concurrency guarantees);
# SQLite is the local/test default.

if os.environ.get('DB_ENGINE', 'sqlite') == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.environ.get('DB_NAME', 'parcelhub'),
            'USER': os.environ.get('DB_USER', 'parcelhub'),
            'PASSWORD': os.environ.get('DB_PASSWORD', ''),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
            'ATOMIC_REQUESTS': False,
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True


REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
}


# Forwarding engine configuration (see forwarding/conf.py for defaults)

FORWARDING = {
    'VOLUMETRIC_DIVISOR': int(os.environ.get('FORWARDING_VOLUMETRIC_DIVISOR', '5000')),
    'QUOTE_VALIDITY_HOURS': int(os.environ.get('FORWARDING_QUOTE_VALIDITY_HOURS', '168')),
    'DEFAULT_CURRENCY': os.environ.get('FORWARDING_DEFAULT_CURRENCY', 'USD'),
    'PAYMENT_WEBHOOK_SECRET': os.environ.get(
        'FORWARDING_PAYMENT_WEBHOOK_SECRET', 'test-signature' if DEBUG else ''
    ),
}

if not DEBUG and not FORWARDING['PAYMENT_WEBHOOK_SECRET']:
    raise ImproperlyConfigured('FORWARDING_PAYMENT_WEBHOOK_SECRET must be set when DEBUG is off')


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'forwarding': {
            'handlers': ['console'],
            'level': os.environ.get('FORWARDING_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
