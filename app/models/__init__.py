# app/models/__init__.py
from app.db.base import Base  # noqa: F401

from . import company         # noqa: F401
from . import user            # noqa: F401
from . import membership      # noqa: F401
from . import employee        # noqa: F401
from . import invite          # noqa: F401
from . import notification    # noqa: F401
from . import audit_log       # noqa: F401
