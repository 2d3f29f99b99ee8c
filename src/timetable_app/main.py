from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from timetable_app.config.settings import Settings, settings as default_settings
from timetable_app.logging import setup_logging
from timetable_app.models import DAYS, AttendanceStatus, Entity, EntityType, ImportStatus, Student
from timetable_app.services import (
    AiGatewayError,
    EditLockedError,
    ImportInProgressError,
    RegistryValidationError,
    ScheduleValidationError,
    SchoolService,
    build_service,
    load_document,
)
from timetable_app.services.attendance_report import export_filename, is_flagged, period_register_filename
from timetable_app.services.attendance_service import next_status
from timetable_app.services.lookup import resolve_entity
from timetable_app.utils.time import today_iso


def _find_entity(service: SchoolService, reference: str, entity_type: EntityType | None = None) -> Entity:
    entity = service.state.find_entity(reference) or resolve_entity(
        service.state.entities, reference, entity_type=entity_type
    )
    if entity is None or (entity_type is not None and entity.type is not entity_type):
        raise SystemExit(f"Unknown {'entity' if entity_type is None else entity_type.value.lower()}: {reference}")
    return entity


def _print_timetable(service: SchoolService, entity: Entity) -> None:
    print(f"{entity.name} ({entity.identifier}) - {entity.type.value}")
    for day in DAYS:
        cells = []
        for slot in service.state.time_slots:
            entry = entity.slot(day, slot.period)
            if entry is None:
                cells.append("-")
            else:
                cells.append("/".join(part for part in (entry.subject, entry.teacher_or_class, entry.room) if part))
        print(f"  {day}: " + " | ".join(cells))


def cmd_show(service: SchoolService, args: argparse.Namespace) -> int:
    if args.entity:
        _print_timetable(service, _find_entity(service, args.entity))
        return 0

    state = service.state
    print(f"{state.school_name} - {state.academic_year}")
    for entity in state.entities:
        count = sum(1 for student in state.students if student.class_id == entity.id)
        suffix = f", {count} students" if entity.type is EntityType.CLASS else ""
        print(f"  [{entity.type.value}] {entity.id}: {entity.name} ({entity.short_code or 'No Code'}){suffix}")
    return 0


def cmd_now(service: SchoolService, args: argparse.Namespace) -> int:
    sessions = service.sessions_now(datetime.now())
    if not sessions:
        print("No classes in session right now.")
        return 0
    for session in sessions:
        print(f"  {session['class_name']}: {session['subject'] or 'Free'} with {session['teacher']} in {session['room'] or '-'}")
    return 0


def cmd_report(service: SchoolService, args: argparse.Namespace) -> int:
    klass = _find_entity(service, args.class_ref, EntityType.CLASS)
    students = {student.id: student for student in service.state.students_in_class(klass.id)}

    if args.view == "daily":
        date = args.date or today_iso()
        matrix = service.daily_matrix(klass.id, date)
        print(f"{klass.name} on {date}")
        for student_id, row in matrix.items():
            cells = [
                row[slot.period].value[:3] if slot.period in row else "-" for slot in service.state.time_slots
            ]
            print(f"  {students[student_id].name:<30} " + " ".join(f"{cell:>3}" for cell in cells))
        return 0

    rollup = service.subject_rollup(klass.id)
    print(f"{klass.name} subject attendance: " + ", ".join(rollup.subjects))
    for item in rollup.per_student:
        cells = []
        for stat in item.stats:
            value = stat.percent
            cells.append("-" if value is None else f"{value}%{'!' if is_flagged(value) else ''}")
        overall = item.overall_percent
        print(f"  {item.student.name:<30} " + " ".join(cells) + f"  overall {overall if overall is not None else '-'}")
    if rollup.class_average is not None:
        averages = ", ".join(f"{avg.subject} {avg.percentage}%" for avg in rollup.class_average.subjects)
        print(f"  Class average: {averages}; overall {rollup.class_average.overall}%")
    return 0


def cmd_export(service: SchoolService, args: argparse.Namespace) -> int:
    klass = _find_entity(service, args.class_ref, EntityType.CLASS)
    today = today_iso()
    destination = Path(args.out) if args.out else Path(export_filename(klass.name, args.view, today))
    if args.view == "daily":
        service.export_daily_csv(klass.id, args.date or today, destination)
    else:
        service.export_subject_csv(klass.id, destination)
    print(f"Wrote {destination}")
    return 0


def cmd_set_slot(service: SchoolService, args: argparse.Namespace) -> int:
    if not service.edit_gate.unlock(args.password):
        print("Incorrect password.", file=sys.stderr)
        return 1
    entity = _find_entity(service, args.entity)
    if args.clear:
        service.clear_slot(entity.id, args.day, args.period)
    else:
        service.set_slot(
            entity.id,
            args.day,
            args.period,
            subject=args.subject or "",
            room=args.room,
            related_code=args.related,
        )
    service.edit_gate.lock()
    _print_timetable(service, service.state.find_entity(entity.id) or entity)
    return 0


def cmd_add_students(service: SchoolService, args: argparse.Namespace) -> int:
    klass = _find_entity(service, args.class_ref, EntityType.CLASS)
    count = service.bulk_import_students(Path(args.file).read_text(encoding="utf-8"), klass.id)
    print(f"Imported {count} students into {klass.name}.")
    return 0


def _find_student(students: Sequence[Student], reference: str) -> Student:
    for student in students:
        if reference in (student.id, student.roll_number, student.name):
            return student
    raise SystemExit(f"Unknown student in this class: {reference}")


def cmd_mark(service: SchoolService, args: argparse.Namespace) -> int:
    entity = _find_entity(service, args.entity)
    entry = entity.slot(args.day, args.period)
    date = args.date or today_iso()
    register = service.period_register(entity.id, entry, date, args.period)
    if register is None:
        print("No class is linked to this slot.", file=sys.stderr)
        return 1

    students = service.state.students_in_class(register.class_id)
    statuses = dict(register.statuses)
    for reference in args.toggle or []:
        student = _find_student(students, reference)
        statuses[student.id] = next_status(statuses[student.id])
    for value in args.set or []:
        reference, _, raw_status = value.partition("=")
        student = _find_student(students, reference.strip())
        try:
            statuses[student.id] = AttendanceStatus(raw_status.strip().upper())
        except ValueError:
            print(f"Unknown status {raw_status!r}; use PRESENT, ABSENT, LATE or EXCUSED.", file=sys.stderr)
            return 1

    action = "Updated" if register.has_existing_records else "Recorded"
    service.save_register(register, statuses)
    print(f"{action} attendance for {register.class_name}, period {register.period} on {date}:")
    for student in students:
        print(f"  {student.roll_number:>4} {student.name:<30} {statuses[student.id].value}")

    if args.csv is not None:
        saved = service.period_register(entity.id, entry, date, args.period)
        destination = Path(args.csv or period_register_filename(register.class_name, register.period, date))
        service.export_period_register_csv(saved, entry.subject if entry else "", destination)
        print(f"Wrote {destination}")
    return 0


def _parse_mappings(values: Sequence[str]) -> dict[str, str]:
    mappings: dict[str, str] = {}
    for value in values:
        code, _, name = value.partition("=")
        mappings[code.strip()] = name.strip()
    return mappings


def cmd_import_timetable(service: SchoolService, args: argparse.Namespace) -> int:
    document = load_document(Path(args.file)) if args.file else None
    status = service.start_import(document=document, text=args.text)
    session = service.import_session
    if status is not ImportStatus.REVIEW or session.result is None:
        print(f"Import failed: {session.error or 'no result'}", file=sys.stderr)
        return 1

    result = session.result
    print(f"Detected {result.detected_type.value} timetable with {len(result.profiles)} profiles:")
    for profile in result.profiles:
        print(f"  - {profile.name}")
    mappings = _parse_mappings(args.map or [])
    unmapped = [code for code in result.unknown_codes if not mappings.get(code)]
    if unmapped:
        print("Codes left unresolved: " + ", ".join(unmapped))

    if not args.yes:
        service.cancel_import()
        print("Dry run only; pass --yes to merge.")
        return 0

    service.finalize_import(mappings)
    print(f"Merged. {len(service.state.entities)} teachers and classes on record.")
    return 0


def cmd_ask(service: SchoolService, args: argparse.Namespace) -> int:
    reply = service.ask(" ".join(args.question))
    if reply is None:
        return 1
    print(reply.text)
    return 0


def cmd_backup(service: SchoolService, args: argparse.Namespace) -> int:
    path = Path(args.file)
    if args.action == "export":
        path.write_text(json.dumps(service.export_data(), indent=2), encoding="utf-8")
        print(f"Wrote {path}")
    else:
        if not service.edit_gate.unlock(args.password or ""):
            print("Incorrect password.", file=sys.stderr)
            return 1
        service.import_data(json.loads(path.read_text(encoding="utf-8")))
        service.edit_gate.lock()
        print(f"Loaded {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timetable-app", description="School timetable and attendance manager.")
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="List teachers and classes, or print one timetable")
    show.add_argument("entity", nargs="?", help="Entity id, code or name")
    show.set_defaults(handler=cmd_show)

    now = sub.add_parser("now", help="Show what every class has in the current period")
    now.set_defaults(handler=cmd_now)

    report = sub.add_parser("report", help="Attendance reports")
    report.add_argument("view", choices=["daily", "subject"])
    report.add_argument("--class", dest="class_ref", required=True)
    report.add_argument("--date", help="ISO date for the daily view (default: today)")
    report.set_defaults(handler=cmd_report)

    export = sub.add_parser("export", help="Export an attendance report as CSV")
    export.add_argument("view", choices=["daily", "subject"])
    export.add_argument("--class", dest="class_ref", required=True)
    export.add_argument("--date")
    export.add_argument("--out")
    export.set_defaults(handler=cmd_export)

    set_slot = sub.add_parser("set-slot", help="Edit one timetable slot (requires the admin password)")
    set_slot.add_argument("entity")
    set_slot.add_argument("day", choices=list(DAYS))
    set_slot.add_argument("period", type=int)
    set_slot.add_argument("--subject")
    set_slot.add_argument("--room")
    set_slot.add_argument("--with", dest="related", help="Code of the teacher or class sharing the slot")
    set_slot.add_argument("--clear", action="store_true")
    set_slot.add_argument("--password", required=True)
    set_slot.set_defaults(handler=cmd_set_slot)

    students = sub.add_parser("add-students", help="Import 'roll, name' lines into a class")
    students.add_argument("--class", dest="class_ref", required=True)
    students.add_argument("file")
    students.set_defaults(handler=cmd_add_students)

    importer = sub.add_parser("import-timetable", help="Extract timetables from a document with the AI importer")
    source = importer.add_mutually_exclusive_group(required=True)
    source.add_argument("--file")
    source.add_argument("--text")
    importer.add_argument("--map", action="append", metavar="CODE=NAME")
    importer.add_argument("--yes", action="store_true", help="Merge the reviewed result")
    importer.set_defaults(handler=cmd_import_timetable)

    mark = sub.add_parser("mark", help="Take attendance for one period; unmarked students are PRESENT")
    mark.add_argument("entity", help="Class, or teacher whose slot names the class")
    mark.add_argument("day", choices=list(DAYS))
    mark.add_argument("period", type=int)
    mark.add_argument("--date", help="ISO date (default: today)")
    mark.add_argument("--set", action="append", metavar="STUDENT=STATUS", help="Student roll, id or name")
    mark.add_argument("--toggle", action="append", metavar="STUDENT", help="Advance to the next status")
    mark.add_argument("--csv", nargs="?", const="", help="Also export the register, optionally to this path")
    mark.set_defaults(handler=cmd_mark)

    ask = sub.add_parser("ask", help="Ask the timetable assistant")
    ask.add_argument("question", nargs="+")
    ask.set_defaults(handler=cmd_ask)

    backup = sub.add_parser("backup", help="Export or import all data as JSON")
    backup.add_argument("action", choices=["export", "import"])
    backup.add_argument("file")
    backup.add_argument("--password", help="Admin password, required for import")
    backup.set_defaults(handler=cmd_backup)

    return parser


def main(argv: Sequence[str] | None = None, *, settings: Settings | None = None) -> int:
    active = settings or default_settings
    setup_logging(json_output=active.log_json, log_level=active.log_level)
    args = build_parser().parse_args(argv)
    service = build_service(active)

    try:
        return args.handler(service, args)
    except (
        AiGatewayError,
        EditLockedError,
        ImportInProgressError,
        RegistryValidationError,
        ScheduleValidationError,
    ) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
