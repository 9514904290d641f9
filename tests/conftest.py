import os

os.environ.setdefault("EXPENSES_DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("EXPENSES_AUTH_SECRET", "test-secret")
os.environ.setdefault("EXPENSES_DATE_FILTER_MODE", "permissive")
