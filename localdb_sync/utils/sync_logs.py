"""
Sync plan rendering and per-run operation records
"""

import os
import json
import logging
from typing import Any, Dict, List, Optional

from .app_logging import get_log_base

logger = logging.getLogger(__name__)


def get_sync_log_dir() -> str:
    return os.path.join(get_log_base(), 'sync', 'operations')


def format_number(value: Optional[int]) -> str:
    """Integer with thousands separators, 'n/a' when absent"""
    if value is None:
        return 'n/a'
    return f"{value:,}"


def plan_lines(chain_id: int, plan) -> List[str]:
    """Human-readable lines describing one network's sync plan"""
    lines = [
        f"Sync plan for chain {chain_id}:",
        f"  database: {plan.db_path}",
        f"  archive: {plan.dump_path}",
        f"  last synced block: {format_number(plan.last_synced_block)}",
    ]
    if plan.next_start_block is None:
        lines.append("  start block: determined by CLI")
    else:
        lines.append(f"  start block: {format_number(plan.next_start_block)}")
    return lines


def log_plan(chain_id: int, plan):
    for line in plan_lines(chain_id, plan):
        logger.info(line)


def save_sync_log(report, success: bool, error: Optional[str] = None,
                  details: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """
    Persist a JSON record for a finished run.

    Args:
        report: SyncReport (or anything with start_time/end_time/chain_ids)
        success: Whether the run completed
        error: Top-level error message for failed runs
        details: Extra fields stored under "details"

    Returns:
        Path of the written record, or None if it could not be written
    """
    log_dir = get_sync_log_dir()
    start_time = report.start_time
    log_entry = {
        'timestamp': start_time.isoformat(),
        'end_time': report.end_time.isoformat(),
        'duration': (report.end_time - start_time).total_seconds(),
        'chain_ids': list(report.chain_ids),
        'result': {
            'success': success,
            'error': error or '',
        },
    }
    if details:
        log_entry['details'] = details

    filepath = os.path.join(log_dir, f"sync_{start_time.strftime('%Y%m%d_%H%M%S')}.json")
    try:
        os.makedirs(log_dir, exist_ok=True)
        with open(filepath, 'w') as f:
            json.dump(log_entry, f, indent=2, default=str)
    except OSError as e:
        logger.error(f"Failed to save sync log {filepath}: {e}")
        return None

    logger.debug(f"Sync log saved to: {filepath}")
    return filepath
