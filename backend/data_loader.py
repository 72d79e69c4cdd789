import os

import pandas as pd

# Table name -> columns the search layer reads. Extra CSV columns are kept.
CATALOG_TABLES = {
    "universities": ["uuid", "name", "slug", "country"],
    "courses": ["id_course", "name_course", "code", "ects", "ba_ma", "topics"],
    "labs": ["id_lab", "name", "slug", "topics", "professors"],
    "teachers": ["id_teacher", "full_name", "name", "email"],
    "programs": ["id", "name", "slug", "university_slug"],
}


def _read_table(data_path: str, table: str, columns: list[str]) -> pd.DataFrame:
    """Read one catalog CSV as strings. Missing file -> empty frame."""
    csv_path = os.path.join(data_path, f"{table}.csv")
    if not os.path.isfile(csv_path):
        print(f"[WARN] Catalog table '{table}' not found at {csv_path}; using an empty table.")
        return pd.DataFrame(columns=columns)

    df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in columns if c not in df.columns]
    if missing:
        print(f"[WARN] Catalog table '{table}' is missing column(s) {missing}; filled with blanks.")
        for col in missing:
            df[col] = ""

    for col in columns:
        df[col] = df[col].astype(str).str.strip()
    return df


def load_data(data_path: str) -> dict:
    """
    Load the search catalog from a directory of CSV files. Raises
    FileNotFoundError when the directory itself does not exist.

    Returns:
      {
        "universities_df": DataFrame, "courses_df": DataFrame, ...,
        "row_counts": {"universities": 12, "courses": 340, ...}
      }
    """
    if not os.path.isdir(data_path):
        raise FileNotFoundError(f"Catalog directory not found: {data_path}")

    data: dict = {}
    row_counts: dict[str, int] = {}
    for table, columns in CATALOG_TABLES.items():
        df = _read_table(data_path, table, columns)
        data[f"{table}_df"] = df
        row_counts[table] = len(df)

    data["row_counts"] = row_counts
    print(f"[INFO] Catalog rows: {row_counts}")
    return data
