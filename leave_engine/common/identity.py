"""Acting principal supplied by the upstream identity provider."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from leave_engine.common.constants import Role


@dataclass(frozen=True)
class Principal:
    """Who is calling. Trusted as given; no credential verification here."""

    user_id: uuid.UUID
    role: Role

