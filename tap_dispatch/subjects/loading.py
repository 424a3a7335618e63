"""Loading of test subjects from entry points."""

from importlib.metadata import EntryPoint, entry_points

from tap_dispatch.subjects.base import SubjectFactory

ENTRY_POINT_GROUP = "tap_dispatch.subjects"


class SubjectNotFoundError(Exception):
    """Raised when a subject is not found."""


def load_subject(key: str) -> SubjectFactory:
    """Load a subject by key.

    Args:
        key: The subject key as registered in pyproject.toml (e.g.,
             "selftest"), or a ``package.module:ClassName`` reference

    Returns:
        The subject class or factory

    Raises:
        SubjectNotFoundError: If no subject with the given key is found

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            subject: SubjectFactory = entry.load()
            return subject

    if ":" in key:
        reference = EntryPoint(name=key, value=key, group=ENTRY_POINT_GROUP)
        try:
            subject = reference.load()
        except (ImportError, AttributeError) as exc:
            raise SubjectNotFoundError(f"Cannot load subject '{key}': {exc}") from exc
        return subject

    available = [e.name for e in entries]
    raise SubjectNotFoundError(
        f"Subject '{key}' not found. Available subjects: {available}"
    )
