"""
Saver App - Export Persistence

Responsibilities:
- Serialize the finalized result set as a JSON array of {"id", "code"}
- Write it atomically, exactly once, and only after a successful run
"""
