"""
Recurring jobs: token refresh (hourly, first run at startup) and the ADS / VSAS observation
dispatches (every 10 seconds after a startup delay).
Each job is max_instances=1 so a tick never overlaps the previous tick of the same job, and
misfire_grace_time=None so a run scheduled before start() still fires (once) on start;
different jobs run side by side in the scheduler's thread pool.
"""
import itertools
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from realm_client.config import (
    DISPATCH_INITIAL_DELAY_SECONDS,
    DISPATCH_INTERVAL_SECONDS,
    MASTER_REALM,
    TOKEN_REFRESH_SECONDS,
)
from realm_client.dispatcher import RequestDispatcher
from realm_client.errors import RealmClientError
from realm_client.observations import (
    ADS_RESOURCE,
    VSAS_RESOURCE,
    build_ads_observation,
    build_vsas_observation,
)
from realm_client.token_refresher import TokenRefresher

logger = logging.getLogger(__name__)

JOB_REFRESH = "refresh_tokens"
JOB_ADS = "ads_observation"
JOB_VSAS = "vsas_observation"


def dispatch_observation(
    dispatcher: RequestDispatcher,
    realm: str,
    resource_name: str,
    build_payload: Callable[[], str],
    method: str = "POST",
) -> str | None:
    """Build one payload and send it. Failures are logged; returns the response body or None."""
    payload = build_payload()
    logger.info("%s observation is ready (%d bytes)", resource_name, len(payload))
    try:
        body = dispatcher.send(realm, resource_name, payload, method)
    except RealmClientError as e:
        logger.error("Dispatch of %s to realm %s failed: %s", resource_name, realm, e)
        return None
    logger.info("Response from %s: %s", resource_name, body)
    return body


def build_scheduler(
    refresher: TokenRefresher,
    dispatcher: RequestDispatcher,
    *,
    refresh_seconds: int = TOKEN_REFRESH_SECONDS,
    dispatch_seconds: int = DISPATCH_INTERVAL_SECONDS,
    initial_delay_seconds: int = DISPATCH_INITIAL_DELAY_SECONDS,
    realm: str = MASTER_REALM,
) -> BackgroundScheduler:
    """Scheduler with the three jobs registered; caller starts and shuts it down."""
    scheduler = BackgroundScheduler(timezone="UTC")
    now = datetime.now(timezone.utc)
    first_dispatch = now + timedelta(seconds=initial_delay_seconds)
    ads_ids = itertools.count(1)

    scheduler.add_job(
        refresher.refresh_all,
        "interval",
        id=JOB_REFRESH,
        seconds=refresh_seconds,
        next_run_time=now,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=None,
    )
    scheduler.add_job(
        dispatch_observation,
        "interval",
        id=JOB_ADS,
        args=(dispatcher, realm, ADS_RESOURCE, lambda: build_ads_observation(next(ads_ids))),
        seconds=dispatch_seconds,
        next_run_time=first_dispatch,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=None,
    )
    scheduler.add_job(
        dispatch_observation,
        "interval",
        id=JOB_VSAS,
        args=(dispatcher, realm, VSAS_RESOURCE, build_vsas_observation),
        seconds=dispatch_seconds,
        next_run_time=first_dispatch,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=None,
    )
    return scheduler
