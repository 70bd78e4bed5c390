"""
Service context extraction for log lines.

Identifies the emitting process as `service/role@env:host:pid`. The role is
taken from the entry point so API, consumer and migration logs stay apart once
aggregated.
"""

from functools import lru_cache
import os
from pathlib import Path
import socket
import sys

from src.platform.config.core_setting import settings


_ROLES_BY_ENTRY_POINT = {
    'consumer_main': 'consumer',
    'migrate': 'migrate',
}


def detect_role(argv0: str) -> str:
    return _ROLES_BY_ENTRY_POINT.get(Path(argv0).stem, 'api')


@lru_cache(maxsize=1)
def get_service_context() -> str:
    role = detect_role(sys.argv[0] if sys.argv else '')
    host = socket.gethostname().split('.')[0]
    return f'{settings.SERVICE_NAME}/{role}@{settings.DEPLOY_ENV}:{host}:{os.getpid()}'
