"""
Command line pipelines for the round tracker.

tracker-progress runs one progression:
1. Load - Read round templates and the current round population
2. Resync - Persist every current-round status
3. Carry forward - Write carried statuses into the next round
4. Confirm - Mark the next round template active
5. Seed - Bulk-create next-round records
"""
