import multiprocessing
import os

wsgi_app = "gradebook.main:app"
bind = os.getenv("GRADEBOOK_BIND", "127.0.0.1:8000")
workers = int(os.getenv("GRADEBOOK_WORKERS", (multiprocessing.cpu_count() * 2) + 1))
worker_class = "uvicorn.workers.UvicornWorker"
# Report generation waits on the narrative generator.
timeout = 90
graceful_timeout = 30
keepalive = 5
loglevel = "info"
accesslog = "-"
errorlog = "-"
