import time


def unix_now() -> int:
    """Return the current time as a Unix timestamp in whole seconds.

    Registry rows and physical entity rows both store ``created``/``updated``
    as integers so they compare and sort identically on every engine.
    """
    return int(time.time())
