from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from catalogist.adapters.sqlalchemy.views import SqlAlchemyViewRefresher


def test_invalid_view_names_are_rejected(sqlite_engine: Engine) -> None:
    with pytest.raises(ValueError, match="catalog; drop"):
        SqlAlchemyViewRefresher(engine=sqlite_engine, views=("catalog_items", "catalog; drop"))


def test_refresh_is_a_noop_without_materialized_views(sqlite_engine: Engine) -> None:
    SqlAlchemyViewRefresher(engine=sqlite_engine, views=("catalog_items",)).refresh()
    SqlAlchemyViewRefresher(engine=sqlite_engine).refresh()
