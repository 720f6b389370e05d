"""
SQL Data Source

DataSource implementation backed by SQLAlchemy. Writes go through insert()
and insert_many(), which publish a change notification on the hub after the
transaction commits, so every subscribed view refreshes.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from waste_metrics.data_source import ChangeCallback, DataSource, Filters, Row, Subscription
from waste_metrics.errors import FetchError
from server.database import Base, create_db_engine, create_session_factory, get_db
from server.models import TABLE_MODELS, ImpactFactor
from server.notifications import ChangeHub, LocalChangeHub
from sharedUtils.config.models import DataSourceConfig
from sharedUtils.logger.logger import get_logger

logger = get_logger(__name__)

RANGE_OPERATORS = {
    "gte": lambda column, value: column >= value,
    "lt": lambda column, value: column < value,
}


class SqlDataSource(DataSource):
    """
    Row store on top of a SQLAlchemy session factory.

    Attributes:
        session_factory: Session factory bound to the engine
        hub: Change hub notified after every committed write
    """

    def __init__(self, session_factory: sessionmaker, hub: Optional[ChangeHub] = None):
        self.session_factory = session_factory
        self.hub = hub or LocalChangeHub()

    @classmethod
    def from_config(cls, config: DataSourceConfig, hub: Optional[ChangeHub] = None) -> "SqlDataSource":
        engine = create_db_engine(config.database_url, config.pool_recycle)
        logger.info("Connected data source to %s", engine.url.render_as_string(hide_password=True))
        return cls(create_session_factory(engine), hub)

    def create_all(self) -> None:
        """Create any missing tables."""
        Base.metadata.create_all(bind=self.session_factory.kw["bind"])

    def query(self, table: str, filters: Optional[Filters] = None) -> List[Row]:
        model = self._model(table)
        statement = select(model)

        for key, value in (filters or {}).items():
            statement = statement.where(self._condition(model, key, value))

        try:
            with get_db(self.session_factory) as db:
                records = db.execute(statement).scalars().all()
                return [self._to_row(record) for record in records]
        except SQLAlchemyError as e:
            logger.error("Query on '%s' failed: %s", table, e)
            raise FetchError(table, str(e)) from e

    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        self._model(table)
        return self.hub.subscribe(table, on_change)

    def insert(self, table: str, row: Row) -> None:
        self.insert_many(table, [row])

    def insert_many(self, table: str, rows: Iterable[Row]) -> int:
        """
        Insert rows in one transaction and notify subscribers of `table`.

        Keys that are not columns of the table are ignored. Impact factor
        rows may name their key `item` instead of `item_key`.

        Returns:
            Number of rows inserted
        """
        model = self._model(table)
        records = [model(**self._to_columns(model, row)) for row in rows]
        if not records:
            return 0

        with get_db(self.session_factory) as db:
            db.add_all(records)

        logger.debug("Inserted %d row(s) into '%s'", len(records), table)
        self.hub.publish(table)
        return len(records)

    def _model(self, table: str):
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise FetchError(table, "unknown table") from None

    def _condition(self, model, key: str, value: Any):
        name, _, operator = key.partition("__")
        column = getattr(model, name, None)
        if column is None:
            raise FetchError(model.__tablename__, f"unknown column '{name}'")

        if operator:
            if operator not in RANGE_OPERATORS:
                raise FetchError(model.__tablename__, f"unsupported operator '{operator}'")
            return RANGE_OPERATORS[operator](column, value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return column.in_(list(value))
        return column == value

    @staticmethod
    def _to_columns(model, row: Row) -> Dict[str, Any]:
        row = dict(row)
        if model is ImpactFactor and "item_key" not in row and "item" in row:
            row["item_key"] = row.pop("item")
        columns = set(inspect(model).columns.keys())
        return {key: value for key, value in row.items() if key in columns}

    @staticmethod
    def _to_row(record) -> Row:
        return {column.key: getattr(record, column.key) for column in inspect(record).mapper.column_attrs}
