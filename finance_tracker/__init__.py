"""Top‑level package for the Finance Tracker.

The calculation modules work on plain lists of records and can be used
without the UI:

* ``dashboard_stats`` – balance, monthly totals and savings rate
* ``recurring`` – materializes recurring transactions into the current month
* ``wishlist`` – purchase scoring for wishlist items
* ``analytics`` – monthly and daily time series for charts
* ``investments`` – yearly investment projection

``db`` and ``services`` persist everything in SQLite, and ``dashboard`` is
the Streamlit app that ties it together:

```bash
streamlit run finance_tracker/dashboard.py
```
"""

from . import analytics  # noqa: F401  # re-exported for convenience
from . import dashboard_stats  # noqa: F401
from . import investments  # noqa: F401
from . import recurring  # noqa: F401
from . import wishlist  # noqa: F401


__all__ = ["analytics", "dashboard_stats", "investments", "recurring", "wishlist"]
