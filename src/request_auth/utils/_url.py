from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def append_query_params(url: str, params: dict[str, str]) -> str:
    """
    Append query parameters to a URL, keeping any query string and fragment
    it already has.

    Args:
        url: The original URL
        params: Parameters to append, in order

    Returns:
        The URL with the parameters added to its query string
    """
    if not params:
        return url

    parts = urlsplit(url)

    query = parts.query
    addition = urlencode(params)

    query = f"{query}&{addition}" if query else addition

    return urlunsplit(parts._replace(query=query))


def split_redirect_params(url: str) -> tuple[dict[str, str], dict[str, str]]:
    """Return the query string and fragment parameters of a redirect URL.

    Only the first value of a repeated parameter is kept.
    """
    parts = urlsplit(url)

    query: dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        query.setdefault(key, value)

    fragment: dict[str, str] = {}
    for key, value in parse_qsl(parts.fragment, keep_blank_values=True):
        fragment.setdefault(key, value)

    return query, fragment
