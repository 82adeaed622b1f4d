"""
QueryResult - tabular rows returned by a data source.

Rows are same-length tuples of nullable strings, paired with column names.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


Row = Tuple[Optional[str], ...]


@dataclass(frozen=True)
class QueryResult:
    """Column names plus rows of nullable string cells."""
    colnames: Tuple[str, ...]
    rows: List[Row] = field(default_factory=list)

    @property
    def nrows(self) -> int:
        return len(self.rows)

    @property
    def ncols(self) -> int:
        return len(self.colnames)
