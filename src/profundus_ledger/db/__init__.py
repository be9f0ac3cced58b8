"""Database layer for the Profundus ledger.

Modules are split by concern: ``connection`` owns the live handle and
transaction scopes, ``schema`` owns DDL, and the ``*_repo``/``table_store``
modules own queries.
"""
