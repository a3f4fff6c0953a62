import itertools
import unittest
from datetime import datetime, timedelta, timezone

from featureforest.models import FeatureRecord, Forest, OrphanPolicy
from featureforest.parsers.records import parse_record_line
from featureforest.services.assembly import ForestAssembler, Resolved, Unresolved, assemble
from featureforest.services.diagnostics import RecordingObserver

_BASE = datetime(2023, 1, 1, tzinfo=timezone.utc)


def _record(
    feature_id: str,
    parent_id: str | None = None,
    *,
    day: int = 0,
    length: int = 30,
    program: str = "program1",
    status: str = "InProgress",
    team: str = "TeamA",
) -> FeatureRecord:
    start = _BASE + timedelta(days=day)
    return FeatureRecord(
        id=feature_id,
        parent_id=parent_id,
        program_id=program,
        progress_status=status,
        assigned_team=team,
        start=start,
        end=start + timedelta(days=length),
    )


def _shape(forest: Forest) -> list:
    def _node(feature):
        return (feature.id, [_node(child) for child in feature.subfeatures])

    return [(program.id, _node(program.root)) for program in forest.programs]


class AdjacencyTests(unittest.TestCase):
    def test_child_before_parent_creates_unresolved_entry(self) -> None:
        assembler = ForestAssembler()
        entries = assembler.build_adjacency([_record("A", "Root")])

        self.assertIsInstance(entries["Root"].data, Unresolved)
        self.assertEqual(entries["Root"].children, ["A"])
        self.assertIsInstance(entries["A"].data, Resolved)

        entries = assembler.build_adjacency([_record("A", "Root"), _record("Root")])
        self.assertTrue(entries["Root"].is_resolved)
        self.assertEqual(entries["Root"].children, ["A"])
        self.assertEqual(assembler.unresolved_ids(entries), [])

    def test_every_referenced_id_has_one_entry(self) -> None:
        records = [_record("Root"), _record("A", "Root"), _record("B", "Ghost")]
        entries = ForestAssembler().build_adjacency(records)

        self.assertEqual(sorted(entries), ["A", "B", "Ghost", "Root"])
        self.assertEqual(ForestAssembler.unresolved_ids(entries), ["Ghost"])
        self.assertEqual(ForestAssembler.find_roots(entries), ["Root"])

    def test_repeated_lines_keep_duplicate_children(self) -> None:
        child = _record("A", "Root")
        entries = ForestAssembler().build_adjacency([_record("Root"), child, child])
        self.assertEqual(entries["Root"].children, ["A", "A"])


class AssembleScenarioTests(unittest.TestCase):
    def test_root_with_two_children_sorted_by_start(self) -> None:
        lines = [
            "2023-01-01T00:00:00Z 2023-12-31T00:00:00Z program1 InProgress TeamA null->Root",
            "2023-03-01T00:00:00Z 2023-04-01T00:00:00Z program1 NotStarted TeamB Root->B",
            "2023-02-01T00:00:00Z 2023-03-01T00:00:00Z program1 Done TeamA Root->A",
        ]
        forest = assemble(parse_record_line(line) for line in lines)

        self.assertEqual(len(forest.programs), 1)
        program = forest.programs[0]
        self.assertEqual(program.id, "program1")
        self.assertEqual(program.root.id, "Root")
        self.assertEqual([child.id for child in program.root.subfeatures], ["A", "B"])
        self.assertEqual(program.root.subfeatures[0].progress_status, "Done")
        self.assertEqual(program.root.subfeatures[1].assigned_team, "TeamB")

    def test_undefined_parent_drops_child_and_its_subtree(self) -> None:
        records = [
            _record("Root"),
            _record("A", "Root", day=1),
            _record("Orphan", "X", day=2),
            _record("OrphanChild", "Orphan", day=3),
        ]
        observer = RecordingObserver()
        forest = assemble(records, observer=observer)

        self.assertEqual(_shape(forest), [("program1", ("Root", [("A", [])]))])
        self.assertIsNone(forest.find_feature("X"))
        self.assertIsNone(forest.find_feature("Orphan"))
        self.assertIsNone(forest.find_feature("OrphanChild"))
        undefined = observer.of_type("undefined_parent")
        self.assertEqual(len(undefined), 1)
        self.assertEqual(undefined[0].feature_id, "X")
        self.assertEqual(undefined[0].detail, "Orphan")

    def test_empty_input(self) -> None:
        forest = assemble([])
        self.assertEqual(forest.programs, [])
        self.assertEqual(forest.program_count, 0)
        self.assertTrue(forest)


class AssemblePropertyTests(unittest.TestCase):
    def _records(self) -> list[FeatureRecord]:
        return [
            _record("Root", day=0, length=365),
            _record("A", "Root", day=10),
            _record("B", "Root", day=5),
            _record("A1", "A", day=12),
            _record("A2", "A", day=11),
            _record("Other", program="program2", day=3),
            _record("O1", "Other", program="program2", day=4),
        ]

    def test_any_input_order_gives_the_same_forest(self) -> None:
        records = self._records()
        expected = assemble(records)
        for permutation in itertools.islice(itertools.permutations(records), 0, None, 97):
            self.assertEqual(assemble(list(permutation)), expected)
        self.assertEqual(assemble(list(reversed(records))), expected)

    def test_subfeatures_sorted_by_start_with_stable_ties(self) -> None:
        records = [
            _record("Root"),
            _record("late", "Root", day=9),
            _record("tie-first", "Root", day=4),
            _record("early", "Root", day=1),
            _record("tie-second", "Root", day=4),
        ]
        forest = assemble(records)

        ids = [child.id for child in forest.programs[0].root.subfeatures]
        self.assertEqual(ids, ["early", "tie-first", "tie-second", "late"])

    def test_nested_levels_are_sorted(self) -> None:
        forest = assemble(self._records())
        program1 = next(program for program in forest.programs if program.id == "program1")

        self.assertEqual([child.id for child in program1.root.subfeatures], ["B", "A"])
        a = program1.root.subfeatures[1]
        self.assertEqual([child.id for child in a.subfeatures], ["A2", "A1"])

    def test_duplicate_id_keeps_latest_data_and_all_children(self) -> None:
        records = [
            _record("Root"),
            _record("A", "Root", day=1, status="NotStarted", team="TeamA"),
            _record("A1", "A", day=2),
            _record("A", "Root", day=3, status="Done", team="TeamZ"),
            _record("A2", "A", day=4),
        ]
        observer = RecordingObserver()
        forest = assemble(records, observer=observer)

        a_nodes = forest.programs[0].root.subfeatures
        # The repeated line attaches A to Root twice.
        self.assertEqual([node.id for node in a_nodes], ["A", "A"])
        for node in a_nodes:
            self.assertEqual(node.progress_status, "Done")
            self.assertEqual(node.assigned_team, "TeamZ")
            self.assertEqual(node.start, _BASE + timedelta(days=3))
            self.assertEqual([child.id for child in node.subfeatures], ["A1", "A2"])
        self.assertEqual(len(observer.of_type("duplicate_record")), 1)

    def test_programs_do_not_mix(self) -> None:
        forest = assemble(self._records())

        self.assertEqual([program.id for program in forest.programs], ["program1", "program2"])
        for program in forest.programs:
            expected = "program2" if program.id == "program2" else "program1"
            members = {feature.id for feature in program.root.walk()}
            self.assertTrue(members)
            for record in self._records():
                if record.id in members:
                    self.assertEqual(record.program_id, expected)

    def test_forest_sorted_by_root_start(self) -> None:
        records = [
            _record("Late", program="p-late", day=50),
            _record("Early", program="p-early", day=1),
            _record("Middle", program="p-middle", day=20),
        ]
        forest = assemble(records)
        self.assertEqual([program.id for program in forest.programs], ["p-early", "p-middle", "p-late"])

    def test_forest_equality_ignores_construction_order(self) -> None:
        forest = assemble(self._records())
        reordered = Forest(programs=list(reversed(forest.programs)))
        self.assertEqual(reordered, forest)

    def test_tied_root_starts_do_not_depend_on_input_order(self) -> None:
        records = [
            _record("R1", program="p1", day=3),
            _record("R2", program="p2", day=3),
            _record("R3", program="p1", day=3),
            _record("C1", "R1", program="p1", day=4),
        ]
        expected = assemble(records)

        self.assertEqual([(p.id, p.root.id) for p in expected.programs], [("p1", "R1"), ("p1", "R3"), ("p2", "R2")])
        for permutation in itertools.permutations(records):
            self.assertEqual(assemble(list(permutation)), expected)
        self.assertEqual(Forest(programs=list(reversed(expected.programs))), expected)


class OrphanPolicyTests(unittest.TestCase):
    def test_promote_turns_orphans_into_programs(self) -> None:
        records = [
            _record("Root", day=5),
            _record("Orphan", "Ghost", program="program9", day=1),
            _record("OrphanChild", "Orphan", program="program9", day=2),
        ]
        observer = RecordingObserver()
        forest = assemble(records, observer=observer, orphan_policy=OrphanPolicy.PROMOTE)

        self.assertEqual(
            _shape(forest),
            [
                ("program9", ("Orphan", [("OrphanChild", [])])),
                ("program1", ("Root", [])),
            ],
        )
        self.assertEqual([event.feature_id for event in observer.of_type("orphan_promoted")], ["Orphan"])

    def test_promote_skips_children_reparented_by_a_later_duplicate(self) -> None:
        records = [
            _record("Root"),
            _record("A", "Ghost", day=1),
            _record("A", "Root", day=2),
        ]
        forest = assemble(records, orphan_policy="promote")
        self.assertEqual(_shape(forest), [("program1", ("Root", [("A", [])]))])


class HardeningTests(unittest.TestCase):
    def test_cycle_reachable_from_root_terminates(self) -> None:
        # Root is re-declared as a root after first being attached under C.
        records = [
            _record("Root", "C"),
            _record("C", "Root", day=1),
            _record("Root"),
        ]
        observer = RecordingObserver()
        forest = assemble(records, observer=observer)

        self.assertEqual(_shape(forest), [("program1", ("Root", [("C", [])]))])
        cycles = observer.of_type("cycle_detected")
        self.assertEqual(len(cycles), 1)
        self.assertEqual(cycles[0].feature_id, "Root")

    def test_unreachable_cycle_is_ignored(self) -> None:
        records = [_record("A", "B"), _record("B", "A")]
        self.assertEqual(assemble(records).programs, [])

    def test_deep_chain_beyond_recursion_limit(self) -> None:
        depth = 5000
        records = [_record("n0")]
        records.extend(_record(f"n{index}", f"n{index - 1}") for index in range(1, depth))
        forest = assemble(reversed(records))

        node = forest.programs[0].root
        count = 1
        while node.subfeatures:
            node = node.subfeatures[0]
            count += 1
        self.assertEqual(count, depth)
        self.assertEqual(node.id, f"n{depth - 1}")

    def test_deep_chains_compare_without_recursion(self) -> None:
        depth = 5000
        records = [_record("n0")]
        records.extend(_record(f"n{index}", f"n{index - 1}") for index in range(1, depth))

        self.assertEqual(assemble(records), assemble(reversed(records)))

        changed = records[:-1] + [_record(f"n{depth - 1}", f"n{depth - 2}", status="Done")]
        self.assertNotEqual(assemble(records), assemble(changed))

    def test_span_checks_report_without_changing_result(self) -> None:
        records = [
            _record("Root", day=0, length=10),
            _record("Inside", "Root", day=1, length=2),
            _record("Outside", "Root", day=5, length=30),
            FeatureRecord(
                id="Backwards",
                parent_id="Root",
                program_id="program1",
                progress_status="S",
                assigned_team="T",
                start=_BASE + timedelta(days=3),
                end=_BASE + timedelta(days=2),
            ),
        ]
        observer = RecordingObserver()
        checked = assemble(records, observer=observer, check_spans=True)

        self.assertEqual(checked, assemble(records))
        flagged = sorted({event.feature_id for event in observer.of_type("span_violation")})
        self.assertEqual(flagged, ["Backwards", "Outside"])

    def test_span_checks_off_by_default(self) -> None:
        observer = RecordingObserver()
        assemble([_record("Root", length=1), _record("A", "Root", day=5)], observer=observer)
        self.assertEqual(observer.of_type("span_violation"), [])


if __name__ == "__main__":
    unittest.main()
