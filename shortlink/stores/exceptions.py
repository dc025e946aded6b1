from ..exceptions import StoreError


class AliasAlreadyExistsError(StoreError):
    """Raised by ``insert`` when a record with the same alias is already stored."""

    detail = "Alias already exists"


__all__ = ["StoreError", "AliasAlreadyExistsError"]
