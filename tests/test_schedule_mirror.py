import pytest

from timetable_app.models import Entity, EntityType, TimetableEntry
from timetable_app.services import ScheduleValidationError, build_entry, write_slot
from timetable_app.services.schedule_mirror import counterpart_options


def _entities():
    teacher = Entity(id="t1", name="John Doe", short_code="JD", type=EntityType.TEACHER)
    grade_ten = Entity(id="c1", name="Grade 10A", short_code="10A", type=EntityType.CLASS)
    grade_nine = Entity(
        id="c2",
        name="Grade 9",
        short_code="G9",
        type=EntityType.CLASS,
        schedule={"Tue": {2: TimetableEntry("ENG")}, "Mon": {3: TimetableEntry("ART")}},
    )
    return [teacher, grade_ten, grade_nine]


def test_teacher_write_is_mirrored_onto_class():
    entities = _entities()

    result = write_slot(entities, "t1", "Mon", 1, TimetableEntry("MATH", "R1", "10A"))

    assert result[0].slot("Mon", 1) == TimetableEntry("MATH", "R1", "10A")
    assert result[1].slot("Mon", 1) == TimetableEntry("MATH", "R1", "JD")
    assert result[2].slot("Mon", 1) is None


def test_class_write_resolves_teacher_by_name():
    entities = _entities()

    result = write_slot(entities, "c1", "Wed", 4, TimetableEntry("SCI", None, "John Doe"))

    assert result[0].slot("Wed", 4) == TimetableEntry("SCI", None, "10A")


def test_mirror_uses_name_when_source_has_no_code():
    entities = _entities()
    entities[0].short_code = None

    result = write_slot(entities, "t1", "Sat", 2, TimetableEntry("BIO", "LAB", "G9"))

    assert result[2].slot("Sat", 2).teacher_or_class == "John Doe"


def test_clearing_a_slot_leaves_the_mirror_in_place():
    entities = write_slot(_entities(), "t1", "Mon", 1, TimetableEntry("MATH", "R1", "10A"))

    cleared = write_slot(entities, "t1", "Mon", 1, None)

    assert cleared[0].slot("Mon", 1) is None
    assert cleared[1].slot("Mon", 1) == TimetableEntry("MATH", "R1", "JD")


def test_unknown_source_is_a_no_op():
    entities = _entities()

    result = write_slot(entities, "missing", "Mon", 1, TimetableEntry("MATH", None, "10A"))

    assert result is entities
    assert result[1].slot("Mon", 1) is None


def test_unresolved_code_still_writes_source_slot():
    entities = _entities()

    result = write_slot(entities, "t1", "Thu", 5, TimetableEntry("PE", None, "ZZ"))

    assert result[0].slot("Thu", 5).subject == "PE"
    assert all(entity.slot("Thu", 5) is None for entity in result[1:])


def test_reference_to_same_type_is_not_mirrored():
    entities = _entities()
    entities.append(Entity(id="t2", name="Sarah Miles", short_code="SM", type=EntityType.TEACHER))

    result = write_slot(entities, "t1", "Mon", 2, TimetableEntry("MATH", None, "SM"))

    assert result[3].slot("Mon", 2) is None


def test_first_matching_counterpart_wins():
    entities = _entities()
    entities.append(Entity(id="c3", name="Duplicate", short_code="10A", type=EntityType.CLASS))

    result = write_slot(entities, "t1", "Sun", 1, TimetableEntry("HIS", None, "10A"))

    assert result[1].slot("Sun", 1) is not None
    assert result[3].slot("Sun", 1) is None


def test_only_the_written_day_is_rebuilt():
    entities = _entities()

    result = write_slot(entities, "t1", "Mon", 1, TimetableEntry("MATH", "R1", "10A"))

    assert all(new is not old for new, old in zip(result, entities))
    assert result[2].schedule["Tue"] is entities[2].schedule["Tue"]
    assert result[2].schedule["Mon"] is not entities[2].schedule["Mon"]
    assert result[2].schedule["Mon"] == entities[2].schedule["Mon"]
    # input snapshot untouched
    assert entities[0].slot("Mon", 1) is None
    assert entities[1].slot("Mon", 1) is None


def test_invalid_day_is_rejected():
    with pytest.raises(ScheduleValidationError):
        write_slot(_entities(), "t1", "Fri", 1, TimetableEntry("MATH"))


def test_build_entry_requires_subject_and_normalizes():
    with pytest.raises(ScheduleValidationError):
        build_entry("   ", "R1", "10A")

    entry = build_entry("math", "", "")
    assert entry == TimetableEntry("MATH", None, None)


def test_counterpart_options_list_opposite_type():
    options = counterpart_options(_entities(), EntityType.CLASS)

    assert [code for code, _ in options] == ["JD"]
