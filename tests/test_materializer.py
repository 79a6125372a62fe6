# tests/test_materializer.py
from pathlib import Path

import pytest

from xivcodex.parsers.base import SheetDataNotFound, SheetMalformed
from xivcodex.parsers.binder import bind
from xivcodex.parsers.materializer import materialize, read_header
from xivcodex.parsers.schema import ColumnType, FieldSpec, SchemaDefinition
from xivcodex.values import IssueKind

HEADER = (
    "key,0,1,2\n"
    "#,Name,Price,IsCollectable\n"
    "int32,str,uint32,bool\n"
)

ITEM = bind(SchemaDefinition("Item", (
    FieldSpec("key", ColumnType.INT, 0),
    FieldSpec("Name", ColumnType.STRING, 1),
    FieldSpec("Price", ColumnType.INT, 2),
    FieldSpec("IsCollectable", ColumnType.BOOL, 3),
)))


def make_csv(tmp_path: Path, content: str, name: str = "Item.csv") -> Path:
    p = tmp_path / name
    p.write_text(content, encoding="utf-8")
    return p


def test_basic_materialize(tmp_path):
    path = make_csv(tmp_path, HEADER + (
        '1,"Tiny Fish",500,True\n'
        '2,"Big Bait",100,False\n'
        '3,"Special, Lure",200,True\n'
    ))
    sheet = materialize(path, ITEM)

    assert sheet.sheet_name == "Item"
    assert len(sheet) == 3
    assert sorted(sheet) == [1, 2, 3]
    assert sheet[1]["Name"] == "Tiny Fish"
    assert sheet[3]["Name"] == "Special, Lure"
    assert sheet[2]["IsCollectable"] is False
    assert sheet.issues == ()
    assert sheet.resolved is False


def test_blank_lines_are_not_rows(tmp_path):
    path = make_csv(tmp_path, HEADER + "\n1,A,1,True\n\n,,,\n2,B,2,False\n")
    sheet = materialize(path, ITEM)
    assert sorted(sheet) == [1, 2]
    assert sheet.issues == ()


def test_invalid_keys_drop_only_their_rows(tmp_path):
    path = make_csv(tmp_path, HEADER + (
        "1,A,1,True\n"
        "abc,B,2,True\n"
        "3,C,3,True\n"
        ",D,4,True\n"
        "5,E,5,True\n"
    ))
    sheet = materialize(path, ITEM)

    assert len(sheet) == 5 - 2
    assert sorted(sheet) == [1, 3, 5]
    key_issues = sheet.issues_of(IssueKind.ROW_KEY)
    assert len(key_issues) == 2
    assert {i.line for i in key_issues} == {5, 7}


def test_bad_cell_keeps_row(tmp_path):
    path = make_csv(tmp_path, HEADER + "1,A,lots,True\n")
    sheet = materialize(path, ITEM)
    assert sheet[1]["Price"] is None
    assert sheet[1]["Name"] == "A"
    (issue,) = sheet.issues_of(IssueKind.CELL)
    assert issue.field == "Price"
    assert issue.row_id == 1


def test_duplicate_key_keeps_first(tmp_path):
    path = make_csv(tmp_path, HEADER + "1,First,1,True\n1,Second,2,False\n")
    sheet = materialize(path, ITEM)
    assert len(sheet) == 1
    assert sheet[1]["Name"] == "First"
    (issue,) = sheet.issues_of(IssueKind.DUPLICATE_KEY)
    assert issue.row_id == 1


def test_type_row_mismatch_is_a_warning(tmp_path, caplog):
    content = (
        "key,0,1,2\n"
        "#,Name,Price,IsCollectable\n"
        "int32,str,str,bool\n"
        "1,A,10,True\n"
    )
    path = make_csv(tmp_path, content)
    with caplog.at_level("WARNING", logger="xivcodex"):
        sheet = materialize(path, ITEM)

    assert sheet[1]["Price"] == 10
    (issue,) = sheet.issues_of(IssueKind.TYPE_MISMATCH)
    assert issue.column == 2
    assert issue.raw == "str"
    assert "Price" in caplog.text


def test_link_type_row_is_compatible_with_reference(tmp_path):
    layout = bind(SchemaDefinition("Spot", (
        FieldSpec("key", ColumnType.INT, 0),
        FieldSpec("Bait", ColumnType.REF, 1, target="Item"),
        FieldSpec("Zone", ColumnType.REF, 2, target="TerritoryType"),
    )))
    path = make_csv(tmp_path, "key,0,1\n#,Bait,Zone\nint32,Item,uint16\n100,1,2\n", "Spot.csv")
    sheet = materialize(path, layout)
    assert sheet.issues == ()
    assert sheet[100]["Bait"].target_id == 1


def test_too_few_header_rows(tmp_path):
    path = make_csv(tmp_path, "key,0,1,2\n#,Name,Price,IsCollectable\n")
    with pytest.raises(SheetMalformed):
        materialize(path, ITEM)


def test_header_only_sheet_is_empty(tmp_path):
    sheet = materialize(make_csv(tmp_path, HEADER), ITEM)
    assert len(sheet) == 0


def test_missing_file(tmp_path):
    with pytest.raises(SheetDataNotFound):
        materialize(tmp_path / "Item.csv", ITEM)


def test_cp1252_fallback(tmp_path):
    p = tmp_path / "Item.csv"
    p.write_bytes((HEADER + "1,Café au lait,5,False\n").encode("cp1252"))
    sheet = materialize(p, ITEM)
    assert sheet[1]["Name"] == "Café au lait"


def test_utf8_bom(tmp_path):
    p = tmp_path / "Item.csv"
    p.write_bytes((HEADER + "1,Crystal,5,False\n").encode("utf-8-sig"))
    sheet = materialize(p, ITEM)
    assert sheet[1]["Name"] == "Crystal"


def test_read_header(tmp_path):
    header = read_header("Item", make_csv(tmp_path, HEADER + "1,A,1,True\n"))
    assert header.indices[0] == "key"
    assert header.names == ("#", "Name", "Price", "IsCollectable")
    assert header.types == ("int32", "str", "uint32", "bool")


def test_records_are_read_only(tmp_path):
    sheet = materialize(make_csv(tmp_path, HEADER + "1,A,1,True\n"), ITEM)
    with pytest.raises(TypeError):
        sheet.records_by_id[2] = sheet[1]
    with pytest.raises(TypeError):
        sheet[1]["Name"] = "B"
