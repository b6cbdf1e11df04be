"""
Production Server Configuration

Gunicorn with Uvicorn workers for the analytics API.
"""

import multiprocessing
import os

# Server socket
bind = os.getenv("BIND", f"0.0.0.0:{os.getenv('API_PORT', '8000')}")
backlog = 512

# Report building awaits the event API; keep workers modest
workers = int(os.getenv("WORKERS", multiprocessing.cpu_count() + 1))
worker_class = "uvicorn.workers.UvicornWorker"
max_requests = 5000
max_requests_jitter = 500
timeout = 60
keepalive = 5
graceful_timeout = 30

proc_name = "agrimarket-analytics-api"
daemon = False

# Application logs go through structlog; gunicorn keeps its own streams
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()
accesslog = None


def when_ready(server):
    """Called when server is ready to receive connections."""
    server.log.info("agrimarket analytics API ready on %s", bind)


def worker_abort(worker):
    """Called when worker receives SIGABRT signal (usually a timeout)."""
    worker.log.warning("Worker %s aborted, likely a slow report request", worker.pid)
