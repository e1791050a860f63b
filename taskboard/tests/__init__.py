import os

# Tests always run against the in-memory database and storage.
os.environ.setdefault("TASKBOARD_USE_IN_MEMORY_BACKENDS", "true")
