from .base import (
    ParserError,
    SchemaNotFound,
    SchemaMalformed,
    FieldBindingError,
    AmbiguousFieldBinding,
    SheetDataNotFound,
    SheetMalformed,
)
from .csv_parser import CSVParser

__all__ = [
    "CSVParser",
    "ParserError",
    "SchemaNotFound",
    "SchemaMalformed",
    "FieldBindingError",
    "AmbiguousFieldBinding",
    "SheetDataNotFound",
    "SheetMalformed",
]
