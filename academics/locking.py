import logging

from .exceptions import NotFoundError, StaleWriteError, ValidationError

logger = logging.getLogger(__name__)


def _as_version(value):
    if isinstance(value, bool):
        raise ValidationError('version must be an integer', field='version')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError('version must be an integer', field='version')


def lock_for_update(queryset, pk, expected_version=None, label='Record'):
    """Fetch one row under ``SELECT ... FOR UPDATE`` and check its version.

    Must be called inside ``transaction.atomic()``. Concurrent writers to the
    same row queue behind the lock; a caller that read an older version gets
    ``StaleWriteError`` instead of silently overwriting the newer state.
    """
    if expected_version is not None:
        expected_version = _as_version(expected_version)
    obj = queryset.select_for_update().filter(pk=pk).first()
    if obj is None:
        raise NotFoundError(f'{label} not found')
    if expected_version is not None and expected_version != obj.version:
        logger.warning(
            'Stale write on %s %s: expected version %s, current %s',
            label, pk, expected_version, obj.version,
        )
        raise StaleWriteError(
            f'{label} was modified by someone else; reload and try again',
            current_version=obj.version,
        )
    return obj
