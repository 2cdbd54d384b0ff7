"""Time-Shards: a provenance ledger for commissioned creative work.

Records what was agreed and delivered between an artist and a client:
  - Notes, milestones and negotiation letters, grouped per project
  - Files referenced by SHA-256 digest, never stored
  - Records sealed by a proof authority and hash-chained per project
  - Confirmed letters locked into a frozen snapshot
  - Versioned JSON persistence with field-by-field legacy migration
"""

__version__ = "0.2.0"
__description__ = "Provenance ledger for commissioned creative work"

from timeshards.core.session import LedgerSession
from timeshards.models.project import Ledger, Project

__all__ = ["LedgerSession", "Ledger", "Project", "__version__"]
