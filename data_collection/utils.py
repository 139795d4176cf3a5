"""Utility functions for the fetch layer.

HTTP helpers shared by the platform fetchers: user-agent rotation, optional
proxy selection and a rate-limiting decorator that spaces out calls to the
same upstream.  The fetchers call these from worker threads (via
``asyncio.to_thread``), so the decorator serialises its bookkeeping with a
lock.
"""

from __future__ import annotations

import functools
import random
import threading
import time
from typing import Any, Callable, Dict, Iterable, Optional

import requests

from brandscout.errors import UpstreamTransient

# List of common desktop and mobile user agents.
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    " (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15"
    " (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15"
    " (KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36"
    " (KHTML, like Gecko) Chrome/124.0 Mobile Safari/537.36",
]


def get_random_user_agent() -> str:
    """Return a random user agent string from the list of known agents."""
    return random.choice(USER_AGENTS)


def rate_limited(min_delay: float) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator to enforce a minimum delay between function calls.

    Calls made less than ``min_delay`` seconds after the previous one wait
    for the remainder.  The delay is shared by every caller of the
    decorated function, including calls from different threads.  Usage::

        @rate_limited(1.0)
        def fetch(...):
            ...
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        lock = threading.Lock()
        last_call = 0.0

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            nonlocal last_call
            with lock:
                elapsed = time.monotonic() - last_call
                if elapsed < min_delay:
                    time.sleep(min_delay - elapsed)
                last_call = time.monotonic()
            return func(*args, **kwargs)

        return wrapper

    return decorator


def make_request(
    url: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    proxies: Optional[Iterable[str]] = None,
    timeout: int = 10,
) -> requests.Response:
    """Perform an HTTP GET request with randomised user agent and optional proxies.

    Parameters
    ----------
    url: str
        The target URL to fetch.
    params: Optional[Dict[str, Any]]
        Query-string parameters.
    proxies: Optional[Iterable[str]]
        An optional iterable of proxy server URLs.  If provided, a
        proxy will be chosen at random for the request.
    timeout: int
        Timeout in seconds for the HTTP request.

    Returns
    -------
    requests.Response
        The HTTP response object; callers check the status code.

    Raises
    ------
    UpstreamTransient
        When the request cannot be completed (connection error, timeout).
    """
    headers = {"User-Agent": get_random_user_agent()}
    if proxies:
        proxy = random.choice(list(proxies))
        proxy_dict = {"http": proxy, "https": proxy}
    else:
        proxy_dict = None
    try:
        return requests.get(url, params=params, headers=headers, proxies=proxy_dict, timeout=timeout)
    except requests.RequestException as exc:
        raise UpstreamTransient(f"GET {url} failed: {exc}") from exc
