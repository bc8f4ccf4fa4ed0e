import nh3


def clean_input(value):
    """Return value with any HTML stripped by nh3. None stays None."""
    if value is None:
        return value
    return nh3.clean(str(value), tags=set())
