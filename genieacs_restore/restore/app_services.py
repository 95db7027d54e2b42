"""Restart and report the GenieACS systemd services after a restore."""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

RESTARTED = 'restarted'
RESTART_FAILED = 'failed'
SKIPPED = 'skipped'


def restart_services(runner, services: List[str], timeout=120) -> Dict[str, str]:
    """
    Restart every enabled service in order. Disabled or unknown services are skipped.

    Returns dict mapping service name to 'restarted', 'failed' or 'skipped'.
    """
    results = {}
    for service in services:
        enabled = runner.run_command(['systemctl', 'is-enabled', service], timeout=30)
        if not enabled['success']:
            logger.info(f"{service} is not enabled, skipping")
            results[service] = SKIPPED
            continue

        logger.info(f"Restarting {service}...")
        result = runner.run_command(['systemctl', 'restart', service], timeout=timeout)
        if result['success']:
            logger.info(f"{service} restarted")
            results[service] = RESTARTED
        else:
            logger.warning(f"Could not restart {service}: {result['error']}")
            results[service] = RESTART_FAILED
    return results


def service_status(runner, services: List[str]) -> Dict[str, bool]:
    """Return whether each service is currently active."""
    return {
        service: runner.run_command(['systemctl', 'is-active', '--quiet', service], timeout=30)['success']
        for service in services
    }


def primary_address(runner) -> Optional[str]:
    """First address reported by `hostname -I`, if any."""
    result = runner.run_command(['hostname', '-I'], timeout=10)
    if not result['success']:
        return None
    addresses = result['stdout'].split()
    return addresses[0] if addresses else None
