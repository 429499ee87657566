import uuid

import shortuuid


def generate_entity_id() -> str:
    """Ids for stock records (items, ledger entries, requisitions, transfers)."""
    return str(uuid.uuid4())


def generate_shortuuid() -> str:
    return shortuuid.uuid()


def generate_short_token(length: int = 6) -> str:
    return shortuuid.ShortUUID().random(length=length)
