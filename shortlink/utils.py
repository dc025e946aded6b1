import secrets
import string

ALPHABET = string.ascii_letters + string.digits
ALIAS_LENGTH = 6


def generate_alias(length: int = ALIAS_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
