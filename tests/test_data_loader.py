import pytest
from data_loader import CATALOG_TABLES, load_data


def _write(path, name, text):
    (path / f"{name}.csv").write_text(text, encoding="utf-8")


@pytest.fixture
def catalog_dir(tmp_path):
    _write(tmp_path, "universities", "uuid,name,slug,country\nu-1, EPFL ,epfl,Switzerland\n")
    _write(tmp_path, "courses", "id_course,name_course,code,ects,ba_ma,topics\n007,Machine Learning,CS-433,8,MA,\n")
    _write(tmp_path, "labs", "id_lab,name,slug,topics,professors\nl-1,MLO,mlo,optimization,Martin Jaggi\n")
    _write(tmp_path, "teachers", "id_teacher,full_name,email\nt-1,Martin Jaggi,martin.jaggi@epfl.ch\n")
    return tmp_path


class TestLoadData:
    def test_all_tables_present(self, catalog_dir):
        data = load_data(str(catalog_dir))
        for table in CATALOG_TABLES:
            assert f"{table}_df" in data

    def test_row_counts(self, catalog_dir):
        data = load_data(str(catalog_dir))
        assert data["row_counts"] == {
            "universities": 1,
            "courses": 1,
            "labs": 1,
            "teachers": 1,
            "programs": 0,
        }

    def test_values_are_stripped_strings(self, catalog_dir):
        data = load_data(str(catalog_dir))
        assert data["universities_df"].iloc[0]["name"] == "EPFL"
        assert data["courses_df"].iloc[0]["id_course"] == "007"
        assert data["courses_df"].iloc[0]["topics"] == ""

    def test_missing_columns_filled(self, catalog_dir):
        data = load_data(str(catalog_dir))
        assert data["teachers_df"].iloc[0]["name"] == ""

    def test_missing_table_is_empty(self, catalog_dir, capsys):
        data = load_data(str(catalog_dir))
        programs = data["programs_df"]
        assert len(programs) == 0
        assert list(programs.columns) == CATALOG_TABLES["programs"]
        assert "[WARN]" in capsys.readouterr().out

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_data(str(tmp_path / "nope"))
