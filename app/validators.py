from __future__ import annotations

import re
from collections.abc import Sequence


def is_valid_destination(destination: str, *, scheme: str = "s3") -> bool:
    pattern = rf"{re.escape(scheme)}://[^/]+/.+"
    return re.fullmatch(pattern, destination, flags=re.DOTALL) is not None


def is_supported_auth_scheme(authorization: str | None, *, scheme: str = "Bearer") -> bool:
    parts = (authorization or "").split()
    if not parts:
        return False
    return parts[0] == scheme


def is_allowed_vault(vault_id: str, allowed_vault_ids: Sequence[str]) -> bool:
    for allowed in allowed_vault_ids:
        if vault_id == allowed:
            return True
    return False
