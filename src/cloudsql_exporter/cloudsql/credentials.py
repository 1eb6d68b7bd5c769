"""Root credentials of restore instances.

A new restore instance gets a random root password.  When requested it is
stored in Secret Manager under the uppercased instance name, so a later run
that finds the instance already provisioned can read it back.
"""

import logging
import secrets
import string

from cloudsql_exporter.adapters.base import SecretStore

logger = logging.getLogger(__name__)

SYMBOLS = "!@#$%^&*()-_=+[]{},.<>?;:"
CHARACTER_CLASSES = (
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
    SYMBOLS,
)
MIN_PASSWORD_LENGTH = len(CHARACTER_CLASSES)


def generate_password(length: int = 24) -> str:
    """Random password with at least one character of every class.

    Raises:
        ValueError: If ``length`` cannot fit one character of each class.
    """
    if length < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"Password length must be at least {MIN_PASSWORD_LENGTH}, got {length}"
        )
    alphabet = "".join(CHARACTER_CLASSES)
    chars = [secrets.choice(cls) for cls in CHARACTER_CLASSES]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    # Shuffle so the guaranteed characters are not always in front
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def secret_id_for(instance: str) -> str:
    """Secret Manager id holding the root password of ``instance``."""
    return instance.upper()


async def store_root_password(
    store: SecretStore,
    project: str,
    instance: str,
    password: str,
    replica_location: str,
) -> str:
    """Store ``password`` as the only version of the instance's secret.

    An existing secret is deleted and recreated rather than versioned.

    Returns:
        The secret id.
    """
    secret_id = secret_id_for(instance)
    if await store.secret_exists(project, secret_id):
        logger.info(f"Replacing existing secret {secret_id}")
        await store.delete_secret(project, secret_id)

    await store.create_secret(project, secret_id, replica_location)
    await store.add_secret_version(project, secret_id, password)
    logger.info(f"Stored root password of {instance} in secret {secret_id}")
    return secret_id


async def load_root_password(store: SecretStore, project: str, instance: str) -> str:
    """Read the stored root password of ``instance``.

    Raises:
        SecretNotFoundError: If no secret exists for the instance.
    """
    return await store.access_latest(project, secret_id_for(instance))
