"""Release publication.

- version: project descriptor -> Version / tag
- targets: build target table and canonical artifact names
- transfer: build outputs handed over from build workers
- registry: GitHub release client (gh CLI) with bounded retries
- orchestrator: the publication state machine
- summary: per-target report rendering and exit codes
"""

from __future__ import annotations
