DEFAULT_DOCUMENT = "index.html"


def resolve(path: str) -> str:
    """Map a request path to the object key it names.

    Leading slashes are dropped and directory-style paths get the default
    document appended. Nothing else is normalized: dot segments and
    percent-escapes reach the store as the transport delivered them.
    """
    key = path.lstrip("/")
    if not key or key.endswith("/"):
        key += DEFAULT_DOCUMENT
    return key
