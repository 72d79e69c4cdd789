import pandas as pd

from normalizer import normalize_query

DEFAULT_LIMIT = 5
LAB_SUBTITLE_CHARS = 50
DEFAULT_PROGRAM_UNIVERSITY = "EPFL"

# Searched columns per table, in the order results are concatenated.
SEARCH_COLUMNS = {
    "universities": ["name", "country"],
    "courses": ["name_course", "code", "topics"],
    "labs": ["name", "topics", "professors"],
    "teachers": ["full_name", "name", "email"],
    "programs": ["name"],
}


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def _or_none(value: str) -> str | None:
    return value or None


def match_rows(df: pd.DataFrame, columns: list[str], query: str, limit: int) -> pd.DataFrame:
    """
    First `limit` rows where any of `columns` contains `query`, ignoring case.
    Literal substring match, like SQL `col ILIKE '%query%'` without wildcards.
    """
    if df is None or len(df) == 0:
        return pd.DataFrame(columns=columns)

    mask = pd.Series(False, index=df.index)
    for col in columns:
        if col not in df.columns:
            continue
        values = df[col].fillna("").astype(str)
        mask |= values.str.contains(query, case=False, regex=False)
    return df[mask].head(limit)


def _format_university(row) -> dict:
    return {
        "id": _text(row.get("uuid")),
        "type": "university",
        "title": _text(row.get("name")),
        "subtitle": _or_none(_text(row.get("country"))),
        "href": f"/universities/{_text(row.get('slug'))}",
    }


def _format_course(row) -> dict:
    ects = _text(row.get("ects"))
    level = _text(row.get("ba_ma"))
    parts = [
        _text(row.get("code")),
        f"• {ects} ECTS" if ects else "",
        f"• {level}" if level else "",
    ]
    course_id = _text(row.get("id_course"))
    return {
        "id": course_id,
        "type": "course",
        "title": _text(row.get("name_course")),
        "subtitle": _or_none(" ".join(p for p in parts if p)),
        "href": f"/courses/{course_id}",
    }


def _format_lab(row) -> dict:
    return {
        "id": _text(row.get("id_lab")),
        "type": "lab",
        "title": _text(row.get("name")),
        "subtitle": _or_none(_text(row.get("topics"))[:LAB_SUBTITLE_CHARS]),
        "href": f"/labs/{_text(row.get('slug'))}",
    }


def _format_teacher(row) -> dict:
    teacher_id = _text(row.get("id_teacher"))
    return {
        "id": teacher_id,
        "type": "teacher",
        "title": _text(row.get("full_name")) or _text(row.get("name")) or "Unknown",
        "subtitle": _or_none(_text(row.get("email"))),
        # Fragment link: the frontend opens the teacher popup.
        "href": f"#teacher-{teacher_id}",
    }


def _format_program(row) -> dict:
    university = _text(row.get("university_slug")) or DEFAULT_PROGRAM_UNIVERSITY
    return {
        "id": _text(row.get("id")),
        "type": "program",
        "title": _text(row.get("name")),
        "subtitle": None,
        "href": f"/programs/{university}/{_text(row.get('slug'))}",
    }


_FORMATTERS = {
    "universities": _format_university,
    "courses": _format_course,
    "labs": _format_lab,
    "teachers": _format_teacher,
    "programs": _format_program,
}


def search_catalog(catalog: dict, query: str, limit: int = DEFAULT_LIMIT) -> list[dict]:
    """
    Searches every catalog table for `query` and merges the hits.

    catalog: output of data_loader.load_data() ({"courses_df": ..., ...}).
    Up to `limit` hits per table, concatenated universities, courses, labs,
    teachers, programs. Each hit:
      {"id": "42", "type": "course", "title": "Machine Learning",
       "subtitle": "CS-433 • 8 ECTS • MA", "href": "/courses/42"}

    Queries shorter than 2 characters once trimmed return [].
    """
    needle = normalize_query(query)
    if needle is None:
        return []

    results: list[dict] = []
    for table, columns in SEARCH_COLUMNS.items():
        df = catalog.get(f"{table}_df")
        hits = match_rows(df, columns, needle, limit)
        formatter = _FORMATTERS[table]
        for _, row in hits.iterrows():
            results.append(formatter(row))
    return results


def count_by_type(results: list[dict]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for hit in results:
        counts[hit["type"]] = counts.get(hit["type"], 0) + 1
    return counts
