from .schema import ColumnInfo, SchemaInspector, TableInfo
from .tabledata import TableDataService

__all__ = ["ColumnInfo", "SchemaInspector", "TableInfo", "TableDataService"]
