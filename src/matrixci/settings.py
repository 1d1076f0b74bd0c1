from __future__ import annotations
import os

WORK_DIR = os.environ.get("MATRIXCI_WORK_DIR") or None  # None -> system temp dir
MAX_WORKERS = int(os.environ.get("MATRIXCI_MAX_WORKERS", "0")) or None  # None -> one per job
MAX_RUNS = int(os.environ.get("MATRIXCI_MAX_RUNS", "4"))
MAX_HISTORY = int(os.environ.get("MATRIXCI_MAX_HISTORY", "100"))  # finished runs kept for lookup
POLL_INTERVAL = float(os.environ.get("MATRIXCI_POLL_INTERVAL", "0.2"))
JOB_TIMEOUT_MINUTES = float(os.environ.get("MATRIXCI_JOB_TIMEOUT_MINUTES", "360"))
HOST = os.environ.get("MATRIXCI_HOST", "127.0.0.1")
PORT = int(os.environ.get("MATRIXCI_PORT", "8000"))
WORKFLOW = os.environ.get("MATRIXCI_WORKFLOW") or None
