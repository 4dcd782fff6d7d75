"""Infrastructure layer: database connections and data access.

- **database.dsn**: DSN parsing into DialectConfig
- **database.dialect**: Per-dialect engine options and SQL log policy
- **database.connection**: Connection factory and the Database handle
- **database.repository**: Generic CRUD and pagination over mapped models
"""
