"""cfstore core package."""

from .orm import Orm
from .schema import Column, Schema, SchemaDiff, Table, TableOptions

__all__ = ["Orm", "Column", "Schema", "SchemaDiff", "Table", "TableOptions"]
