import uuid

import shortuuid


def new_id() -> str:
    """Primary key for bookkeeping rows (sales, purchases, ledger entries...)."""
    return str(uuid.uuid4())


def new_user_id() -> str:
    return shortuuid.uuid()


def random_token(length: int = 12) -> str:
    """URL-safe random string, used for username suffixes and throwaway passwords."""
    return shortuuid.ShortUUID().random(length=length)
