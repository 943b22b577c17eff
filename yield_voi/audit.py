"""
Audit trail for an analysis run.

Every stage of the pipeline records what it computed, which inputs it
used and what it assumed, so a report can be traced back to the exact
settings that produced it.
"""

import datetime
from typing import Dict, List

from . import APP_NAME, APP_VERSION


class AuditLog:
    """Timestamped audit trail of data loads, assumptions and computations."""

    def __init__(self):
        self.entries: List[Dict[str, str]] = []
        self.log("SESSION_START", f"{APP_NAME} v{APP_VERSION} started")

    def log(self, action_type: str, description: str, details: str = ""):
        entry = {
            'timestamp': datetime.datetime.now().isoformat(),
            'action': action_type,
            'description': description,
            'details': details,
        }
        self.entries.append(entry)

    def log_assumption(self, assumption: str, source: str = ""):
        self.log("ASSUMPTION", assumption, f"Source: {source}" if source else "")

    def log_computation(self, calc_type: str, details: str):
        self.log("COMPUTATION", calc_type, details)

    def log_data_load(self, source: str, details: str):
        self.log("DATA_LOAD", f"Data loaded from {source}", details)

    def log_warning(self, warning: str):
        self.log("WARNING", warning)

    def actions(self, action_type: str) -> List[Dict[str, str]]:
        return [e for e in self.entries if e['action'] == action_type]

    def export_text(self) -> str:
        lines = [
            f"{'='*70}",
            f"  {APP_NAME} v{APP_VERSION} Audit Log",
            f"  Exported: {datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"{'='*70}\n",
        ]
        for e in self.entries:
            ts = e['timestamp'][:19].replace('T', ' ')
            lines.append(f"[{ts}] [{e['action']}] {e['description']}")
            if e['details']:
                for dl in e['details'].split('\n'):
                    lines.append(f"    {dl}")
        return '\n'.join(lines)
