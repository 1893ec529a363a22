"""Recent git branches, ranked by last activity.

Features:
- Rank local branches by the newest of tip commit, reflog and upstream times
- Plain text and JSON listings
- Interactive view with fuzzy search and sort cycling
- Checkout, delete and merge from the interactive view
"""

__version__ = "0.1.0"
