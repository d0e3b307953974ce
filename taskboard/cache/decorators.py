from functools import wraps
from typing import Callable


def read_through(key_builder: Callable[..., object]):
    """
    Decorator for async service methods whose instance owns ``self.cache``.
    key_builder receives the same args/kwargs as the method (minus self).
    Example:
      @read_through(lambda user_id, *_, **__: user_id)
      async def _load_user(self, user_id, db): ...

    A None result is not cached. A result is also not cached when the key
    was written or invalidated while it was loading; the caller still gets it.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)

            cached = self.cache.get(key)
            if cached is not None:
                return cached

            version = self.cache.version(key)
            # load outside of any cache lock
            value = await fn(self, *args, **kwargs)
            if value is not None:
                self.cache.put_if_unchanged(key, value, version)
            return value

        return wrapper

    return decorator


def write_through(key_builder: Callable[..., object]):
    """
    Store the method's return value under the key once it returns.
    If the method raises, the entry is invalidated instead.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = key_builder(*args, **kwargs)
            try:
                value = await fn(self, *args, **kwargs)
            except Exception:
                self.cache.invalidate(key)
                raise
            if value is None:
                self.cache.invalidate(key)
            else:
                self.cache.put(key, value)
            return value

        return wrapper

    return decorator
