"""
Record Structurer Module

Combines per-selector value lists into row-shaped records.
"""

from typing import List, Mapping, Sequence

from harvester.models import Record, RecordValue


def structure_records(results: Mapping[str, Sequence[RecordValue]]) -> List[Record]:
    """
    Zip selector results into records.

    Multi-valued selectors are read as index-aligned columns: the i-th value
    of every selector belongs to row i. A selector with exactly one value is
    repeated on every row (e.g. a page title next to each product). Shorter
    columns are padded with None. Selectors without values are left out.

    Args:
        results: Selector name -> extracted values, in selector order

    Returns:
        max(1, longest column) records
    """
    columns = {name: values for name, values in results.items() if values}
    row_count = max([1, *(len(values) for values in columns.values())])

    records: List[Record] = []
    for index in range(row_count):
        record: Record = {}
        for name, values in columns.items():
            if index < len(values):
                record[name] = values[index]
            elif len(values) == 1:
                record[name] = values[0]
            else:
                record[name] = None
        records.append(record)

    return records
