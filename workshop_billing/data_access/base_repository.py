# workshop_billing/data_access/base_repository.py

import logging
import sqlite3
from typing import Generic, TypeVar, Type, List, Optional, Dict, Any, TYPE_CHECKING, Union
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from dataclasses import fields, MISSING

from workshop_billing.data_access.database_manager import DatabaseManager

if TYPE_CHECKING:
    from ..business_logic.entities.base_entity import BaseEntity

logger = logging.getLogger(__name__)

T = TypeVar('T', bound='BaseEntity')


class BaseRepository(Generic[T]):
    """
    Maps one dataclass entity onto one table.

    Every method accepts an optional open connection. Passing the
    connection yielded by DatabaseManager.transaction() makes the call
    part of that transaction; without it the call runs on its own
    short-lived connection.
    """

    def __init__(self, db_manager: DatabaseManager, model_type: Type[T], table_name: str):
        self.db_manager = db_manager
        self.model_type = model_type
        self._table_name = table_name
        self._db_columns = [f.name for f in fields(model_type) if f.init]
        logger.debug(f"BaseRepository for {self._table_name} initialized. Columns: {self._db_columns}")

    @property
    def table_name(self) -> str:
        return self._table_name

    def get_by_id(self, entity_id: int, conn: Optional[sqlite3.Connection] = None) -> Optional[T]:
        query = f"SELECT * FROM {self._table_name} WHERE id = ?"
        row = self.db_manager.fetch_one(query, (entity_id,), conn=conn)
        return self._entity_from_row(dict(row)) if row else None

    def get_all(self, order_by: Optional[str] = None, conn: Optional[sqlite3.Connection] = None) -> List[T]:
        query = f"SELECT * FROM {self._table_name}"
        if order_by:
            query += f" ORDER BY {order_by}"
        rows = self.db_manager.fetch_all(query, conn=conn)
        return [self._entity_from_row(dict(row)) for row in rows]

    def _entity_to_dict_for_db(self, entity: T) -> Dict[str, Any]:
        """Converts the entity's persisted fields into sqlite-friendly values."""
        data_to_persist = {}
        for col in self._db_columns:
            v = getattr(entity, col, None)
            processed_v = v
            # Money is stored as text so the exact Decimal survives the round trip
            if isinstance(v, Decimal): processed_v = str(v)
            elif isinstance(v, Enum): processed_v = v.value
            elif isinstance(v, bool): processed_v = 1 if v else 0
            elif isinstance(v, (datetime, date)): processed_v = v.isoformat()
            data_to_persist[col] = processed_v
        return data_to_persist

    def add(self, entity: T, conn: Optional[sqlite3.Connection] = None) -> T:
        logger.debug(f"BaseRepository.add: Type {type(entity).__name__} to table '{self._table_name}'.")

        fields_to_insert = self._entity_to_dict_for_db(entity)
        fields_to_insert.pop('id', None)

        columns = ', '.join(fields_to_insert.keys())
        placeholders = ', '.join(['?'] * len(fields_to_insert))
        values_tuple = tuple(fields_to_insert.values())
        query = f"INSERT INTO {self._table_name} ({columns}) VALUES ({placeholders})"

        logger.debug(f"BaseRepository.add: Values for INSERT: {values_tuple}")
        cursor = self.db_manager.execute_query(query, values_tuple, conn=conn)
        entity.id = cursor.lastrowid
        logger.debug(f"BaseRepository.add: Entity ID set to {entity.id} after insert.")
        return entity

    def update(self, entity: T, conn: Optional[sqlite3.Connection] = None) -> T:
        if getattr(entity, 'id', None) is None:
            raise ValueError(f"Entity of type {type(entity).__name__} must have an ID to be updated.")

        fields_to_update = self._entity_to_dict_for_db(entity)
        fields_to_update.pop('id', None)

        set_clause = ', '.join([f"{key} = ?" for key in fields_to_update.keys()])
        values_tuple = tuple(fields_to_update.values()) + (entity.id,)
        query = f"UPDATE {self._table_name} SET {set_clause} WHERE id = ?"

        logger.debug(f"BaseRepository.update: Query: {query}")
        self.db_manager.execute_query(query, values_tuple, conn=conn)
        logger.debug(f"BaseRepository.update: Entity ID {entity.id} in table {self._table_name} updated.")
        return entity

    def delete(self, entity_id: int, conn: Optional[sqlite3.Connection] = None) -> bool:
        query = f"DELETE FROM {self._table_name} WHERE id = ?"
        cursor = self.db_manager.execute_query(query, (entity_id,), conn=conn)
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Entity ID {entity_id} deleted from table {self._table_name}.")
        return deleted

    def find_by_criteria(self, criteria: Dict[str, Any], order_by: Optional[str] = None,
                         conn: Optional[sqlite3.Connection] = None) -> List[T]:
        """
        Finds entities matching every criterion.
        A value may be an (operator, operand) tuple, e.g. {"next_run_date": ("<=", "2026-01-31")}.
        """
        if not criteria:
            return self.get_all(order_by=order_by, conn=conn)

        conditions = []
        params = []
        for key, value in criteria.items():
            if isinstance(value, tuple) and len(value) == 2:
                operator, val = value
                if str(operator).upper() == 'BETWEEN' and isinstance(val, (list, tuple)) and len(val) == 2:
                    conditions.append(f"{key} BETWEEN ? AND ?")
                    params.extend(self._to_db_value(v) for v in val)
                else:
                    conditions.append(f"{key} {operator} ?")
                    params.append(self._to_db_value(val))
            else:
                conditions.append(f"{key} = ?")
                params.append(self._to_db_value(value))

        query = f"SELECT * FROM {self._table_name} WHERE " + " AND ".join(conditions)
        if order_by:
            query += f" ORDER BY {order_by}"

        logger.debug(f"BaseRepository.find_by_criteria: Query: {query}, Values: {tuple(params)}")
        rows = self.db_manager.fetch_all(query, tuple(params), conn=conn)
        return [self._entity_from_row(dict(row)) for row in rows]

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        if isinstance(value, Enum): return value.value
        if isinstance(value, bool): return 1 if value else 0
        if isinstance(value, (datetime, date)): return value.isoformat()
        if isinstance(value, Decimal): return str(value)
        return value

    def _entity_from_row(self, row: Dict[str, Any]) -> T:
        """Builds the dataclass from a row, converting columns back to the declared field types."""
        entity_data = {}

        for f in fields(self.model_type):
            if not f.init:
                continue

            field_name = f.name
            field_type = f.type
            value_from_db = row.get(field_name)

            if value_from_db is None:
                if f.default is MISSING and f.default_factory is MISSING:
                    is_optional = getattr(field_type, '__origin__', None) is Union and type(None) in getattr(field_type, '__args__', [])
                    if not is_optional:
                        raise ValueError(
                            f"Database integrity error: NULL value found for required field '{field_name}' "
                            f"in table '{self._table_name}' for row: {row}"
                        )
                    entity_data[field_name] = None
                continue

            actual_type = field_type
            if getattr(field_type, '__origin__', None) is Union:
                possible_types = [arg for arg in getattr(field_type, '__args__', []) if arg is not type(None)]
                if possible_types:
                    actual_type = possible_types[0]

            try:
                if isinstance(actual_type, type) and issubclass(actual_type, Enum):
                    entity_data[field_name] = actual_type(value_from_db)
                elif actual_type == Decimal:
                    entity_data[field_name] = Decimal(str(value_from_db))
                elif actual_type == datetime and isinstance(value_from_db, str):
                    entity_data[field_name] = datetime.fromisoformat(value_from_db)
                elif actual_type == date and isinstance(value_from_db, str):
                    entity_data[field_name] = date.fromisoformat(value_from_db.split("T")[0].split(" ")[0])
                elif actual_type == bool and isinstance(value_from_db, int):
                    entity_data[field_name] = bool(value_from_db)
                else:
                    entity_data[field_name] = value_from_db
            except (ValueError, ArithmeticError) as e:
                logger.error(f"Type conversion failed for field '{field_name}' with value '{value_from_db}' in table '{self._table_name}': {e}")
                raise ValueError(f"Corrupt value for '{field_name}' in table '{self._table_name}': {value_from_db!r}") from e

        return self.model_type(**entity_data)
