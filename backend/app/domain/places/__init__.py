"""Places domain exports."""

from .expiry import ExpiryOption, compute_expiry, is_expired  # noqa: F401
from .models import Location, Route, Visibility, Waypoint  # noqa: F401
from .visibility import VisibilityResolver, evaluate  # noqa: F401
