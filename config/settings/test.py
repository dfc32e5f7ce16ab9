"""Test settings for SlotHub.

In-memory SQLite, fast password hashing, Celery tasks run inline, and
fixed payment credentials the provider tests sign against.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

BOOKINGS = {
    'PENDING_TTL_MINUTES': 30,
    'PROTECTION_PLAN_RATE': '0.20',
    'REJECT_ON_PAYMENT_FAILURE': True,
    'CONFLICT_REPORT_WINDOW_MINUTES': 60,
}

PAYME = {
    'MERCHANT_ID': 'test-merchant',
    'MERCHANT_KEY': 'test-payme-key',
    'CHECKOUT_URL': 'https://checkout.paycom.uz',
    'TRANSACTION_TIMEOUT_MS': 43200000,
    'AMOUNT_DIVISOR': 100,
}

CLICK = {
    'SERVICE_ID': '1001',
    'MERCHANT_ID': '2002',
    'SECRET_KEY': 'test-click-secret',
    'CHECKOUT_URL': 'https://my.click.uz',
}

LOGGING['root']['level'] = 'CRITICAL'  # noqa: F405
LOGGING['loggers']['apps']['level'] = 'CRITICAL'  # noqa: F405
LOGGING['loggers']['shared']['level'] = 'CRITICAL'  # noqa: F405
LOGGING['loggers']['apps.payments.security']['level'] = 'CRITICAL'  # noqa: F405
