"""
Result assembly helpers.

Combine the flat records produced by the response parsers into a single
GeoDataFrame, DataFrame or named series, preserving input order.
"""

from typing import Any, Dict, Iterable, List, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd

# All vector outputs are geographic longitude/latitude
OUTPUT_CRS = "EPSG:4326"


def assemble_layer(records: List[Dict[str, Any]],
                   columns: Sequence[str]) -> gpd.GeoDataFrame:
    """
    Build a GeoDataFrame from parsed records.

    Args:
        records: Dicts holding every column, including "geometry" (may be None)
        columns: Column order of the output; must include "geometry"

    Returns:
        GeoDataFrame in EPSG:4326, one row per record in the given order.
        Text and other non-numeric columns are object dtype with None
        marking missing values.
    """
    frame = pd.DataFrame.from_records(records, columns=list(columns))

    for column in frame.columns:
        if column == "geometry":
            continue
        series = frame[column]
        if pd.api.types.is_object_dtype(series) or pd.api.types.is_string_dtype(series):
            series = series.astype(object)
            frame[column] = series.where(series.notna(), None)

    return gpd.GeoDataFrame(frame, geometry="geometry", crs=OUTPUT_CRS)


def assemble_matrix(values: Dict[Tuple[int, int], Any],
                    n_rows: int,
                    n_cols: int,
                    numeric: bool = True) -> pd.DataFrame:
    """
    Build an origin x destination table from cell values.

    Cells absent from ``values`` are missing: NaN for numeric tables,
    None for text tables. Rows and columns keep request order and carry
    positional labels; callers attach place names if they want them.
    """
    if numeric:
        grid = np.full((n_rows, n_cols), np.nan, dtype=float)
    else:
        grid = np.full((n_rows, n_cols), None, dtype=object)

    for (row, col), value in values.items():
        grid[row, col] = value

    return pd.DataFrame(grid)


def name_responses(responses: Iterable[Any]) -> pd.Series:
    """
    Index geocode documents by their input address.

    Returns a Series in input order whose labels are the input addresses
    (None for missing inputs) and whose values are the raw documents
    (None where no request was made or it failed). Duplicate addresses
    keep one entry each.
    """
    responses = list(responses)
    return pd.Series(
        [r.document for r in responses],
        index=pd.Index([r.address for r in responses], dtype=object, name="address"),
        dtype=object,
        name="document",
    )
