"""arq worker settings module.

Import path for arq CLI: arq groupdesk.workers.settings.WorkerSettings
"""

from __future__ import annotations

from groupdesk.workers.reaper import WorkerSettings

__all__ = ["WorkerSettings"]
