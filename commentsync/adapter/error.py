"""Infrastructure layer errors."""


class AdapterError(Exception):
    """Base infrastructure error."""

    pass


class StoreResponseError(AdapterError):
    """The comment store answered with a payload that cannot be parsed."""

    pass
