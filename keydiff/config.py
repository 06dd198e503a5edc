import os
from datetime import timedelta


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production-12345'
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50MB max file size
    ALLOWED_EXTENSIONS = {'tsv', 'txt', 'csv', 'dat'}
    DEFAULT_DELIMITER = os.environ.get('KEYDIFF_DELIMITER', 'auto')
    LOG_LEVEL = os.environ.get('KEYDIFF_LOG_LEVEL', 'INFO')
    # Idle comparison sessions, with their file contents, are dropped after this
    PERMANENT_SESSION_LIFETIME = timedelta(hours=2)
    EXPORT_FILENAME = 'comparison_result.csv'
    # Rows of each file echoed back after upload
    PREVIEW_ROWS = 5

    # Prevent browser caching
    SEND_FILE_MAX_AGE_DEFAULT = 0


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    LOG_LEVEL = 'DEBUG'
