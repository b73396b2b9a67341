"""
etc_mapping -- links from toll records to external entities.

Every mapping moves through an explicit status table (pending, active,
inactive, rejected) and a record may hold at most one active mapping.
"""
