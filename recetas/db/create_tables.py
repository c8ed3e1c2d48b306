"""Provision the prescription schema: ``python -m recetas.db.create_tables``."""
from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from recetas.core.logging_setup import configure_logging
from recetas.db.session import dispose_engine, init_engine


def main() -> None:
    configure_logging()
    try:
        engine = init_engine(create_tables=True)
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
    finally:
        dispose_engine()
    print(f"Tablas prescriptions/prescription_items listas en {engine.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    main()
