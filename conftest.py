"""Global pytest configuration."""

import os

# Keep tests independent of any local .env before settings are first read
os.environ.setdefault("TRIPSYNC_API_BASE_URL", "http://testserver/api")
