
import sys
import os
import traceback

# Add project root to path
sys.path.append(os.getcwd())

print("Starting verification...")

try:
    from eventpulse.core import config
    print("Config imported.")

    from sqlalchemy.orm import configure_mappers

    # Import Base last (and all models)
    from eventpulse.db.base import Base
    print("Base imported. Models loaded.")

    print("Checking ORM mappings...")
    configure_mappers()
    print("SUCCESS: ORM mappings are valid.")

    # Compile DDL against the postgres dialect without connecting
    from sqlalchemy.dialects import postgresql
    from sqlalchemy.schema import CreateTable

    for table in Base.metadata.sorted_tables:
        CreateTable(table).compile(dialect=postgresql.dialect())
        print(f"Table {table.name} compiles.")

except Exception:
    print("FAILURE: Model verification failed.")
    traceback.print_exc()
    sys.exit(1)
