"""Scoring services. Raise ValueError for rejected input; routes map it to 400."""


class NotFoundError(ValueError):
    """Referenced row does not exist (or is not part of the given tournament)."""
