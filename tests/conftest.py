import os
import tempfile

# wikigem configures logging and rate limits at import time
os.environ.setdefault('WIKIGEM_LOG_DIR', tempfile.mkdtemp(prefix='wikigem-logs-'))
os.environ.setdefault('RATELIMIT_ENABLED', 'false')
