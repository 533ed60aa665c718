"""Domain modules package."""

from app.modules.booking import models as booking_models  # noqa: F401
from app.modules.catalog import models as catalog_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
