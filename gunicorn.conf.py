"""
Gunicorn configuration.
"""
import os

bind = f"0.0.0.0:{os.getenv('PORT', '8080')}"

# Worker configuration
workers = int(os.getenv('GUNICORN_WORKERS', '2'))
worker_class = 'sync'
# Above DB_TIMEOUT_SECONDS so storage timeouts surface as 503s, not worker kills
timeout = 30
keepalive = 5

# Logging
accesslog = '-'  # stdout
errorlog = '-'   # stderr
loglevel = os.getenv('LOG_LEVEL', 'info')
capture_output = True

proc_name = 'merit-engine'

# Preload so the scheduler starts once in the master process
preload_app = True

graceful_timeout = 30


def on_starting(server):
    print("[Gunicorn] Starting merit engine...")


def on_exit(server):
    print("[Gunicorn] Merit engine shutting down...")
