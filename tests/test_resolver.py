# tests/test_resolver.py
import json
from pathlib import Path

import pytest

from xivcodex import CSVParser, ParserOptions
from xivcodex.parsers.base import SchemaNotFound
from xivcodex.parsers.cache import SheetCache
from xivcodex.parsers.resolver import ForeignKeyResolver, collect_refs
from xivcodex.values import ForeignKeyRef, IssueKind, ParsedSheet, Record, RefState, make_group


def link(name: str, target: str, **extra) -> dict:
    return {"name": name, "converter": {"type": "link", "target": target}, **extra}


def write_sheet(root: Path, sheet: str, definitions, header_names, rows) -> None:
    schemas, csvs = root / "schemas", root / "csv"
    schemas.mkdir(exist_ok=True)
    csvs.mkdir(exist_ok=True)
    (schemas / f"{sheet}.json").write_text(
        json.dumps({"sheet": sheet, "definitions": definitions}), encoding="utf-8"
    )
    width = len(header_names)
    lines = [
        ",".join(["key"] + [str(i) for i in range(width)]),
        ",".join(["#"] + list(header_names)),
        ",".join(["int32"] + [""] * width),
    ]
    lines += [",".join(str(c) for c in row) for row in rows]
    (csvs / f"{sheet}.csv").write_text("\n".join(lines) + "\n", encoding="utf-8")


def make_parser(root: Path, **options) -> CSVParser:
    return CSVParser(root / "schemas", root / "csv", ParserOptions(**options))


# ---------------------------------------------------------------------------
# Cycles
# ---------------------------------------------------------------------------

def test_two_sheet_cycle_is_cut_once(tmp_path):
    write_sheet(tmp_path, "A", [{"name": "Name", "type": "str"}, link("Partner", "B")],
                ["Name", "Partner"], [[1, "Alpha", 5]])
    write_sheet(tmp_path, "B", [{"name": "Name", "type": "str"}, link("Back", "A")],
                ["Name", "Back"], [[5, "Beta", 1]])

    sheet_a = make_parser(tmp_path).parse_sheet("A")
    partner = sheet_a[1]["Partner"]
    assert partner.state is RefState.RESOLVED
    beta = partner.resolved
    assert beta.id == 5
    assert beta["Name"] == "Beta"

    back = beta["Back"]
    assert back.state is RefState.CYCLE
    assert back.resolved is None
    assert (back.target_sheet, back.target_id) == ("A", 1)

    cycles = sheet_a.issues_of(IssueKind.CYCLE)
    assert len(cycles) == 1
    assert cycles[0].sheet == "B"
    assert cycles[0].row_id == 5


def test_self_reference(tmp_path):
    write_sheet(tmp_path, "Quest", [{"name": "Name", "type": "str"}, link("Next", "Quest")],
                ["Name", "Next"], [[7, "Loop", 7]])
    quest = make_parser(tmp_path).parse_sheet("Quest")[7]
    assert quest["Next"].is_cycle
    assert quest["Next"].target_id == 7


def test_cycle_does_not_stop_other_edges(tmp_path):
    write_sheet(tmp_path, "A", [link("Partner", "B"), link("Item", "Item")],
                ["Partner", "Item"], [[1, 5, 9]])
    write_sheet(tmp_path, "B", [link("Back", "A")], ["Back"], [[5, 1]])
    write_sheet(tmp_path, "Item", [{"name": "Name", "type": "str"}], ["Name"], [[9, "Crystal"]])

    a1 = make_parser(tmp_path).parse_sheet("A")[1]
    assert a1["Partner"].resolved["Back"].is_cycle
    assert a1["Item"].resolved["Name"] == "Crystal"


def test_long_chain_resolves_without_recursion(tmp_path):
    depth = 3000
    # newest first, so the first row resolved walks the whole chain
    rows = [[i, f"Quest {i}", i - 1] for i in range(depth, 0, -1)]
    write_sheet(tmp_path, "Quest", [{"name": "Name", "type": "str"}, link("PreviousQuest", "Quest")],
                ["Name", "PreviousQuest"], rows)

    quests = make_parser(tmp_path).parse_sheet("Quest")
    assert len(quests) == depth

    rec, steps = quests[depth], 0
    while rec["PreviousQuest"] is not None:
        rec = rec["PreviousQuest"].resolved
        steps += 1
    assert steps == depth - 1
    assert rec.id == 1
    assert quests.issues_of(IssueKind.CYCLE) == []


# ---------------------------------------------------------------------------
# Missing targets
# ---------------------------------------------------------------------------

def test_missing_target_sheet_resolves_to_none(tmp_path):
    write_sheet(tmp_path, "Quest", [{"name": "Name", "type": "str"}, link("Issuer", "ENpcResident")],
                ["Name", "Issuer"], [[1, "One", 1000123], [2, "Two", 1000124]])
    quests = make_parser(tmp_path).parse_sheet("Quest")
    assert quests[1]["Issuer"] is None
    assert quests[1]["Name"] == "One"
    missing = quests.issues_of(IssueKind.TARGET_MISSING)
    assert [i.row_id for i in missing] == [1, 2]


def test_missing_target_row_resolves_to_none(tmp_path):
    write_sheet(tmp_path, "Spot", [link("Bait", "Item")], ["Bait"], [[100, 42]])
    write_sheet(tmp_path, "Item", [{"name": "Name", "type": "str"}], ["Name"], [[1, "Tiny Fish"]])
    spots = make_parser(tmp_path).parse_sheet("Spot")
    assert spots[100]["Bait"] is None
    (issue,) = spots.issues_of(IssueKind.TARGET_MISSING)
    assert issue.raw == "42"


def test_issues_do_not_depend_on_parse_order(tmp_path):
    write_sheet(tmp_path, "A", [link("Next", "B")], ["Next"], [[1, 7]])
    write_sheet(tmp_path, "B", [link("Spot", "C")], ["Spot"], [[7, 99]])
    write_sheet(tmp_path, "C", [{"name": "Name", "type": "str"}], ["Name"], [[1, "Lake"]])

    fresh = make_parser(tmp_path).parse_sheet("B")

    parser = make_parser(tmp_path)
    sheet_a = parser.parse_sheet("A")
    sheet_b = parser.parse_sheet("B")

    assert sheet_b.issues == fresh.issues
    (issue,) = sheet_b.issues_of(IssueKind.TARGET_MISSING)
    assert (issue.sheet, issue.row_id, issue.raw) == ("B", 7, "99")
    assert sheet_a.issues == fresh.issues


def test_shared_target_reports_its_issue_once(tmp_path):
    write_sheet(tmp_path, "Spot", [link("Bait", "Item")], ["Bait"], [[100, 1], [200, 1]])
    write_sheet(tmp_path, "Item", [link("Vendor", "ENpcBase")], ["Vendor"], [[1, 99]])
    write_sheet(tmp_path, "ENpcBase", [{"name": "Name", "type": "str"}], ["Name"], [[5, "Merchant"]])

    spots = make_parser(tmp_path).parse_sheet("Spot")
    (issue,) = spots.issues_of(IssueKind.TARGET_MISSING)
    assert (issue.sheet, issue.row_id) == ("Item", 1)


def test_cycle_issues_are_one_per_edge(tmp_path):
    n = 6
    # row i links to i+1 and i+2, wrapping around
    rows = [[i, i % n + 1, (i + 1) % n + 1] for i in range(1, n + 1)]
    write_sheet(tmp_path, "G", [link("X", "G"), link("Y", "G")], ["X", "Y"], rows)

    graph = make_parser(tmp_path).parse_sheet("G")
    cycles = graph.issues_of(IssueKind.CYCLE)
    edges = {(i.sheet, i.row_id, i.raw) for i in cycles}
    assert len(cycles) == len(edges)
    assert 0 < len(edges) <= 2 * n


def test_sheet_added_later_is_resolved(tmp_path):
    write_sheet(tmp_path, "A", [link("Npc", "C")], ["Npc"], [[1, 3]])
    write_sheet(tmp_path, "B", [link("Quest", "A")], ["Quest"], [[2, 1]])
    parser = make_parser(tmp_path)

    sheet_a = parser.parse_sheet("A")
    assert sheet_a[1]["Npc"] is None
    assert len(sheet_a.issues_of(IssueKind.TARGET_MISSING)) == 1

    write_sheet(tmp_path, "C", [{"name": "Name", "type": "str"}], ["Name"], [[3, "Momodi"]])
    sheet_b = parser.parse_sheet("B")
    npc = sheet_b[2]["Quest"].resolved["Npc"]
    assert npc.resolved["Name"] == "Momodi"
    assert sheet_b.issues_of(IssueKind.TARGET_MISSING) == []


# ---------------------------------------------------------------------------
# Nested references
# ---------------------------------------------------------------------------

def test_references_inside_arrays_and_groups(tmp_path):
    write_sheet(tmp_path, "Quest", [
        {"name": "Name", "type": "str"},
        {"type": "repeat", "count": 2, "definition": link("PreviousQuest", "Quest")},
        link("Issuer{Start}", "ENpc"),
    ], ["Name", "PreviousQuest[0]", "PreviousQuest[1]", "Issuer{Start}"], [
        [1, "First", 0, 0, 9],
        [2, "Second", 1, 0, 9],
    ])
    write_sheet(tmp_path, "ENpc", [{"name": "Name", "type": "str"}], ["Name"], [[9, "Momodi"]])

    second = make_parser(tmp_path).parse_sheet("Quest")[2]
    prev = second["PreviousQuest"]
    assert prev[0].resolved["Name"] == "First"
    assert prev[1] is None
    assert second["Issuer"]["Start"].resolved["Name"] == "Momodi"
    # resolved targets carry their own resolved references
    assert prev[0].resolved["Issuer"]["Start"].resolved["Name"] == "Momodi"


def test_shared_targets_are_resolved_once(tmp_path):
    write_sheet(tmp_path, "Spot", [link("Bait", "Item")], ["Bait"], [[100, 1], [200, 1]])
    write_sheet(tmp_path, "Item", [{"name": "Name", "type": "str"}], ["Name"], [[1, "Tiny Fish"]])
    spots = make_parser(tmp_path).parse_sheet("Spot")
    assert spots[100]["Bait"].resolved is spots[200]["Bait"].resolved


# ---------------------------------------------------------------------------
# Resolver on hand-built sheets
# ---------------------------------------------------------------------------

def _sheets(**sheets):
    def factory(name):
        if name not in sheets:
            raise SchemaNotFound(name)
        return sheets[name]
    return SheetCache(factory)


def test_resolver_with_in_memory_sheets():
    item = ParsedSheet("Item", {1: Record(1, {"Name": "Tiny Fish"})})
    spot = ParsedSheet("Spot", {
        100: Record(100, {"Bait": ForeignKeyRef("Item", 1), "Tags": (ForeignKeyRef("Item", 1), None)}),
    })
    resolver = ForeignKeyResolver(_sheets(Item=item, Spot=spot))
    resolved = resolver.resolve_sheet(spot)

    rec = resolved[100]
    assert rec["Bait"].resolved == Record(1, {"Name": "Tiny Fish"})
    assert rec["Tags"][0].is_resolved
    assert rec["Tags"][1] is None
    # the input sheet is untouched
    assert spot[100]["Bait"].state is RefState.UNRESOLVED


def test_collect_refs_dedupes_targets():
    ref = ForeignKeyRef("Item", 1)
    value = {
        "a": ref,
        "b": (ref, ForeignKeyRef("Item", 2)),
        "c": make_group({"x": ForeignKeyRef("Npc", 1)}),
        "d": ref.as_cycle(),
    }
    assert list(collect_refs(value)) == [("Item", 1), ("Item", 2), ("Npc", 1)]


def test_deref_missing_sheet_is_none():
    resolver = ForeignKeyResolver(_sheets())
    assert resolver.deref(ForeignKeyRef("Nope", 1)) is None


@pytest.mark.parametrize("resolve", [True, False])
def test_parse_is_idempotent(tmp_path, resolve):
    write_sheet(tmp_path, "A", [link("Partner", "B")], ["Partner"], [[1, 5]])
    write_sheet(tmp_path, "B", [link("Back", "A")], ["Back"], [[5, 1]])
    first = make_parser(tmp_path, resolve_foreign_keys=resolve).parse_sheet("A")
    second = make_parser(tmp_path, resolve_foreign_keys=resolve).parse_sheet("A")
    assert dict(first) == dict(second)
