"""
Cache utilities for Squad Picks
Provides the route caching decorator and invalidation helpers
"""

import functools

from flask import current_app, request

from squadpicks import cache


def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query = "&".join(f"{k}={v}" for k, v in sorted(request.args.items(multi=True)))
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query}_{args_str}_{kwargs_str}".replace("/", "_")


def cached_route(timeout=300, key_prefix="view"):
    """
    Decorator for caching route responses

    Only the view's return value is cached, so it must not depend on the
    current user.

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = f"{key_prefix}_{make_cache_key(*args, **kwargs)}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate cache keys matching a pattern

    Args:
        pattern: Pattern to match cache keys
    """
    try:
        # Flask-Caching has no portable pattern delete, so clear everything
        cache.clear()
        current_app.logger.info(f"Cache cleared for pattern: {pattern}")
    except Exception as e:
        current_app.logger.error(f"Failed to clear cache: {e}")


def invalidate_leaderboard_cache():
    """Drop cached standings after grades, locks, submissions or penalties change"""
    invalidate_cache_pattern("*leaderboard*")

