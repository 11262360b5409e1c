"""Driver proxies: one capability set, several backend drivers.

Each proxy is **import-guarded**: a third-party driver module is only
required at ``connect()`` time, not at import time. Install the
corresponding extra::

    pip install dbproxy[mysql]        # mysql-connector-python
    pip install dbproxy[postgresql]   # psycopg2-binary

Architecture::

    Proxy (base.py)          Abstract base implementing the capability set
        |-- MySQLProxy       mysql.connector, server-side prepared statements
        |-- GenericProxy     sqlite3 / psycopg2 / mysql.connector via DB-API

Guardrails:
    ❌ ``proxy.query("DELETE FROM t WHERE id=" + user_input)``
    ✅ ``proxy.query("DELETE FROM t WHERE id = ?", [user_input])``
    ❌ ``proxy = GenericProxy("sqlite:app.db")`` in application code
    ✅ ``proxy = dbproxy.get("sqlite:app.db")``

Tags:
    dbproxy, database, proxies, multi-backend, import-guarded

Doc-Types:
    package-overview, module-index
"""

from .base import Proxy
from .generic import GenericProxy
from .mysql import MySQLProxy

__all__ = [
    "Proxy",
    "GenericProxy",
    "MySQLProxy",
]
