# Application Configuration
# Secrets come from the environment (.env is loaded by python-dotenv), never from this file
import os
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file


def env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me')

    # SQLAlchemy Configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///portal.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # reCAPTCHA server side
    RECAPTCHA_VERIFY_URL = os.environ.get(
        'RECAPTCHA_VERIFY_URL', 'https://www.google.com/recaptcha/api/siteverify'
    )
    RECAPTCHA_TIMEOUT = float(os.environ.get('RECAPTCHA_TIMEOUT', 5))
    RECAPTCHA_SECRET_KEY = os.environ.get('RECAPTCHA_SECRET_KEY')
    RECAPTCHA_SECRET_V2 = os.environ.get('RECAPTCHA_SECRET_V2')
    RECAPTCHA_SECRET_V3 = os.environ.get('RECAPTCHA_SECRET_V3')
    # One lookup per version; the shared secret fills in whichever is unset
    RECAPTCHA_SECRETS = {
        'v2': RECAPTCHA_SECRET_V2 or RECAPTCHA_SECRET_KEY,
        'v3': RECAPTCHA_SECRET_V3 or RECAPTCHA_SECRET_KEY,
    }

    # reCAPTCHA client side (public)
    RECAPTCHA_SITE_KEY_V2 = os.environ.get('RECAPTCHA_SITE_KEY_V2')
    RECAPTCHA_SITE_KEY_V3 = os.environ.get('RECAPTCHA_SITE_KEY_V3')
    RECAPTCHA_V2_ONLY = env_flag('RECAPTCHA_V2_ONLY')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

    DEBUG = env_flag('FLASK_DEBUG')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    RECAPTCHA_VERIFY_URL = 'https://recaptcha.test/siteverify'
    RECAPTCHA_SECRETS = {'v2': 'secret-v2', 'v3': 'secret-v3'}
    RECAPTCHA_SITE_KEY_V2 = 'site-v2'
    RECAPTCHA_SITE_KEY_V3 = 'site-v3'
    RECAPTCHA_V2_ONLY = False
    LOG_LEVEL = 'DEBUG'
