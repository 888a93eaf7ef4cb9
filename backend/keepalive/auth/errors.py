"""Auth-specific errors."""


class AuthenticationError(Exception):
    """Base class for ping authentication failures.

    The error message is for internal logging only;
    the client always receives a fixed, generic body.
    """


class MalformedHeaderError(AuthenticationError):
    """Authorization header missing, not `Bearer <token>`, or empty (401)."""


class InvalidTokenError(AuthenticationError):
    """Token does not resolve to any project (403).

    Deliberately covers unknown, deleted and mismatched tokens alike.
    """
