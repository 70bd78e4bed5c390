"""
Versioned queue message schemas

Every message on every queue carries `schema_version` ("<major>.<minor>").
Consumers accept any minor of the major they were built for and reject other
majors as unrecoverable: retrying a message nobody can read only delays the
dead-letter.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from src.platform.exception.exceptions import UnrecoverableMessageError


SCHEMA_VERSION = '1.0'
SUPPORTED_MAJOR = 1


class VersionedMessage(BaseModel):
    model_config = ConfigDict(extra='ignore')

    schema_version: str = SCHEMA_VERSION

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode='json')


M = TypeVar('M', bound=VersionedMessage)


def schema_major(version: Any) -> int:
    if not isinstance(version, str) or not version:
        raise UnrecoverableMessageError('schema_version manquant ou invalide')
    major, _, _ = version.partition('.')
    try:
        return int(major)
    except ValueError as e:
        raise UnrecoverableMessageError(f'schema_version invalide: {version!r}') from e


def decode_message(model: type[M], data: dict[str, Any]) -> M:
    """Validate a queue payload against `model`, rejecting unknown majors first."""
    major = schema_major(data.get('schema_version'))
    if major != SUPPORTED_MAJOR:
        raise UnrecoverableMessageError(
            f'Version de schéma non prise en charge: {data.get("schema_version")}',
            details={'supported_major': SUPPORTED_MAJOR},
        )

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise UnrecoverableMessageError(
            'Message de file invalide',
            details={'errors': e.errors(include_url=False, include_context=False)},
        ) from e
