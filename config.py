import os

class Config:
    PRODUCT_DATA_URL = os.getenv('PRODUCT_DATA_URL', 'https://s3.amazonaws.com/roxiler.com/product_transaction.json')
    PRODUCT_FETCH_TIMEOUT = float(os.getenv('PRODUCT_FETCH_TIMEOUT', 10))
    PRODUCT_CACHE_TTL = float(os.getenv('PRODUCT_CACHE_TTL', 0))
    PRODUCT_FETCH_FAILURE_MODE = os.getenv('PRODUCT_FETCH_FAILURE_MODE', 'degrade')
    DEFAULT_MONTH = os.getenv('DEFAULT_MONTH', '3')
    DEFAULT_PER_PAGE = int(os.getenv('DEFAULT_PER_PAGE', 10))
    MAX_PER_PAGE = int(os.getenv('MAX_PER_PAGE', 100))
    CORS_ALLOW_ORIGINS = os.getenv('CORS_ALLOW_ORIGINS', '*')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
