"""Per-invocation dependency context."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

import requests

from notify_worker.channels.base import BaseChannel
from notify_worker.channels.factory import build_channel_registry
from notify_worker.config.environment import EnvironmentConfig
from notify_worker.config.models import AppConfig
from notify_worker.persistence.database import SessionScope, get_session
from notify_worker.templates.resolver import TemplateResolver
from notify_worker.tracking.policy import RetryPolicy
from notify_worker.tracking.status import StatusTracker
from notify_worker.utils.timestamps import utc_now
from notify_worker.work_queue.base import QueueService
from notify_worker.work_queue.sql import SqlQueueService


@dataclass
class WorkerContext:
    """Everything one invocation needs, constructed once and passed down.

    Tests build this directly with doubles for the queue, the store and the
    channels.
    """

    app_config: AppConfig
    env_config: EnvironmentConfig
    queue: QueueService
    template_resolver: TemplateResolver
    status_tracker: StatusTracker
    retry_policy: RetryPolicy
    channels: Dict[str, BaseChannel]
    clock: Callable[[], datetime] = utc_now

    @classmethod
    def build(
        cls,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        session_scope: SessionScope = get_session,
        clock: Callable[[], datetime] = utc_now,
        http_session: Optional[requests.Session] = None,
    ) -> "WorkerContext":
        """Wire the components for one invocation.

        http_session is shared by the HTTP channels; the caller owns it.
        """
        retry_policy = RetryPolicy.from_config(app_config.worker, app_config.retry)
        return cls(
            app_config=app_config,
            env_config=env_config,
            queue=SqlQueueService(
                session_scope=session_scope,
                clock=clock,
                promotion_limit=app_config.worker.promotion_batch_limit,
                default_max_retries=app_config.worker.default_max_retries,
            ),
            template_resolver=TemplateResolver(session_scope=session_scope),
            status_tracker=StatusTracker(
                session_scope=session_scope, retry_policy=retry_policy, clock=clock
            ),
            retry_policy=retry_policy,
            channels=build_channel_registry(
                app_config, env_config, session_scope=session_scope, session=http_session
            ),
            clock=clock,
        )
