"""
Entry point for running the coordination CLI as a module.

Usage:
    python -m cli init-db --db path/to/coordination.db
    python -m cli refresh-statuses
    python -m cli offerings list --status active
    python -m cli requests stats --actor ACTOR_ID
    python -m cli actors add-sponsor "Dr. Ada" --capacity 3
"""

from .commands import main

if __name__ == "__main__":
    main()
