"""Storage engine adapters.

- gdbm_store: hash-table engine (GNU dbm), unordered iteration
- lmdb_store: B-tree engine (LMDB), key-ordered iteration

Adapters are imported on demand by ``drop.storage.registry`` so that a
missing native engine only matters when a database actually needs it.
"""
