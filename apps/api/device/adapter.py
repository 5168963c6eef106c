from datetime import datetime
from typing import List, Optional


class TokenFieldAdapter:
    """
    Reads and writes device tokens on a row that may still carry the legacy
    single-token column next to the canonical list column. Reads return the
    union of both; writes fold everything into the list and clear the legacy
    column.
    """

    def __init__(
        self,
        list_field: str,
        legacy_field: str,
        updated_field: Optional[str] = None,
    ):
        self.list_field = list_field
        self.legacy_field = legacy_field
        self.updated_field = updated_field

    def read(self, row) -> List[str]:
        tokens: List[str] = []
        for token in getattr(row, self.list_field, None) or []:
            if token and token not in tokens:
                tokens.append(token)
        legacy = getattr(row, self.legacy_field, None)
        if legacy and legacy not in tokens:
            tokens.append(legacy)
        return tokens

    def holds(self, row, token: str) -> bool:
        return token in self.read(row)

    def write(self, row, tokens: List[str], now: Optional[datetime] = None) -> None:
        deduped: List[str] = []
        for token in tokens:
            if token and token not in deduped:
                deduped.append(token)
        # A new list object, so the JSON column is flagged dirty
        setattr(row, self.list_field, deduped)
        setattr(row, self.legacy_field, None)
        if self.updated_field and now is not None:
            setattr(row, self.updated_field, now)


PRINCIPAL_TOKENS = TokenFieldAdapter("fcm_tokens", "fcm_token", "fcm_updated_at")
ADMIN_TOKENS = TokenFieldAdapter("admin_fcm_tokens", "admin_fcm_token")
