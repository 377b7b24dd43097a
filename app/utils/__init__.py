"""
Utility modules (logging, metrics, security, storage keys).

Import submodules directly; this package keeps no eager imports so that
app.database can load metrics without pulling in schemas and models.
"""
