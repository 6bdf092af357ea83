"""Command-line interface for the SchoolAttend application."""

import argparse
import datetime
import pathlib
import sys
from typing import Optional

import rich
from rich.table import Table

from schoolattend import config
from schoolattend.features import validators
from schoolattend.model import (
    access,
    backup,
    csv_export,
    database,
    demo_data,
    excel,
    rates,
    roster_import,
    schema,
    summary,
    users_mod,
)


def build_parser() -> argparse.ArgumentParser:
    """Define command line arguments."""
    parser = argparse.ArgumentParser(prog="schoolattend")
    parser.add_argument(
        "-d", "--db_path",
        help="Path to attendance database",
        type=pathlib.Path,
        default=None,
    )
    parser.add_argument(
        "-c", "--config_path",
        help="Path to config file",
        type=pathlib.Path,
        default=None,
    )
    parser.set_defaults(func=None)
    subparsers = parser.add_subparsers()

    init_parser = subparsers.add_parser(
        "init", help="Create a new database with a system administrator account."
    )
    init_parser.add_argument("--admin", default="admin", help="Administrator username.")
    init_parser.set_defaults(func=init_database)

    demo_parser = subparsers.add_parser("demo", help="Load sample data.")
    demo_parser.add_argument("--seed", type=int, default=None)
    demo_parser.set_defaults(func=load_demo)

    school_parser = subparsers.add_parser("add-school", help="Register a school.")
    _add_user_arg(school_parser)
    school_parser.add_argument("name")
    school_parser.set_defaults(func=add_school)

    toggle_parser = subparsers.add_parser(
        "toggle-school", help="Activate or deactivate a school's subscription."
    )
    _add_user_arg(toggle_parser)
    toggle_parser.add_argument("school_id")
    toggle_parser.set_defaults(func=toggle_school)

    user_parser = subparsers.add_parser("add-user", help="Create a user account.")
    _add_user_arg(user_parser)
    user_parser.add_argument("new_username")
    user_parser.add_argument("name")
    user_parser.add_argument("role", choices=[role.value for role in schema.Role])
    user_parser.add_argument("--school", dest="school_id", default=None)
    user_parser.add_argument("--student", dest="student_id", default=None)
    user_parser.set_defaults(func=add_user)

    import_parser = subparsers.add_parser(
        "import-students", help="Add students from a text file, one 'name, grade' per line."
    )
    _add_user_arg(import_parser)
    import_parser.add_argument("import_path", type=pathlib.Path)
    import_parser.set_defaults(func=import_students)

    mark_parser = subparsers.add_parser("mark", help="Record a student's attendance.")
    _add_user_arg(mark_parser)
    mark_parser.add_argument("date")
    mark_parser.add_argument("student_id")
    mark_parser.add_argument("status")
    mark_parser.add_argument("--note", default=None)
    mark_parser.set_defaults(func=mark_attendance)

    dash_parser = subparsers.add_parser("dashboard", help="Show today's attendance.")
    _add_user_arg(dash_parser)
    dash_parser.add_argument("--today", default=None)
    _add_report_arg(dash_parser)
    dash_parser.set_defaults(func=show_dashboard)

    history_parser = subparsers.add_parser("history", help="Show a student's records.")
    _add_user_arg(history_parser)
    history_parser.add_argument("student_id", nargs="?", default=None)
    _add_report_arg(history_parser)
    history_parser.set_defaults(func=show_history)

    monthly_parser = subparsers.add_parser("monthly", help="Monthly attendance grid.")
    _add_user_arg(monthly_parser)
    monthly_parser.add_argument("year", type=int)
    monthly_parser.add_argument("month", type=int, choices=range(1, 13))
    monthly_parser.add_argument("--grade", default=None)
    monthly_parser.add_argument("--excel", type=pathlib.Path, default=None)
    monthly_parser.set_defaults(func=show_monthly)

    csv_parser = subparsers.add_parser("export-csv", help="Export records to CSV.")
    _add_user_arg(csv_parser)
    csv_parser.add_argument("csv_path", type=pathlib.Path, nargs="?", default=None)
    csv_parser.set_defaults(func=export_csv)

    threshold_parser = subparsers.add_parser(
        "threshold", help="Set the attendance rate below which students are at risk."
    )
    _add_user_arg(threshold_parser)
    threshold_parser.add_argument("value")
    threshold_parser.set_defaults(func=set_threshold)

    backup_parser = subparsers.add_parser("backup", help="Write a JSON backup.")
    _add_user_arg(backup_parser)
    backup_parser.add_argument("backup_dir", type=pathlib.Path, nargs="?", default=None)
    backup_parser.set_defaults(func=write_backup)

    restore_parser = subparsers.add_parser("restore", help="Restore a JSON backup.")
    _add_user_arg(restore_parser, required=False)
    restore_parser.add_argument("backup_path", type=pathlib.Path)
    restore_parser.set_defaults(func=restore_backup)

    clear_parser = subparsers.add_parser("clear", help="Erase all data.")
    _add_user_arg(clear_parser)
    clear_parser.add_argument(
        "--yes", action="store_true", help="Confirm. This cannot be undone."
    )
    clear_parser.set_defaults(func=clear_data)
    return parser


def _add_user_arg(subparser: argparse.ArgumentParser, required: bool = True) -> None:
    subparser.add_argument(
        "-u", "--username", required=required, help="Act as this user."
    )


def _add_report_arg(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--report",
        metavar="MODULE:FUNCTION",
        default=None,
        help="Also print a written report from this function.",
    )


def print_report(target: Optional[str], payload: dict) -> None:
    """Hand a payload to the report writer named on the command line, if any."""
    if target is None:
        return
    summarize = summary.load_summarizer(target)
    rich.print(summary.summarize_safely(summarize, payload))


def open_dbase(create_new: bool = False) -> database.DBase:
    """Open the database named in the settings."""
    db_path = config.settings.db_path or pathlib.Path.cwd() / config.DB_FILE_NAME
    return database.DBase(db_path, create_new=create_new)


def open_session(args: argparse.Namespace) -> access.Session:
    """Log in as the user named on the command line, or exit."""
    result = access.authenticate(open_dbase(), args.username)
    if result.session is None:
        rich.print(f"[red]{result.message}[/red]")
        sys.exit(2)
    return result.session


def open_admin_session(args: argparse.Namespace) -> access.Session:
    """Log in and require the permission to manage every school's data."""
    session = open_session(args)
    session.require(schema.Permission.MANAGE_SCHOOLS)
    return session


def init_database(args: argparse.Namespace) -> None:
    dbase = open_dbase(create_new=True)
    users_mod.User(
        "", args.admin, args.admin, schema.Role.SYSTEM_ADMINISTRATOR
    ).add(dbase)
    rich.print(f"Created {dbase.db_path} with administrator [bold]{args.admin}[/bold].")
    if config.settings.config_path is None:
        config_path = pathlib.Path.cwd() / config.CONFIG_FILE_NAME
        config.settings.create_new_config_file(config_path)
        rich.print(f"Wrote default settings to {config_path}")


def load_demo(args: argparse.Namespace) -> None:
    db_path = config.settings.db_path or pathlib.Path.cwd() / config.DB_FILE_NAME
    dbase = database.DBase(db_path, create_new=not db_path.exists())
    count = demo_data.generate(dbase, seed=args.seed)
    rich.print(f"Loaded demo data with {count} attendance records.")


def add_school(args: argparse.Namespace) -> None:
    school = open_session(args).add_school(args.name)
    rich.print(f"Added school {school.name} with ID [bold]{school.school_id}[/bold].")


def toggle_school(args: argparse.Namespace) -> None:
    is_active = open_session(args).toggle_school(args.school_id)
    if is_active is None:
        rich.print(f"[red]No school with ID {args.school_id}.[/red]")
        sys.exit(1)
    rich.print(f"School {args.school_id} is now {'active' if is_active else 'inactive'}.")


def add_user(args: argparse.Namespace) -> None:
    user = open_session(args).add_user(
        args.new_username, args.name, args.role, args.school_id, args.student_id
    )
    rich.print(f"Added {user.role.value} [bold]{user.username}[/bold].")


def import_students(args: argparse.Namespace) -> None:
    session = open_session(args)
    text = args.import_path.read_text(encoding="utf-8-sig")
    count = roster_import.import_students(session, text)
    if count == 0:
        rich.print("[yellow]No valid lines found. Use the format: name - grade[/yellow]")
    else:
        rich.print(f"Added {count} students.")


def mark_attendance(args: argparse.Namespace) -> None:
    session = open_session(args)
    on_date = validators.parse_date(args.date)
    status = validators.parse_status(args.status)
    if session.mark(args.student_id, on_date, status, args.note) == 0:
        rich.print(f"[red]Student {args.student_id} is not on your roster.[/red]")
        sys.exit(1)
    rich.print(f"{args.student_id}: {schema.STATUS_LABELS[status]} on {on_date}.")


def show_dashboard(args: argparse.Namespace) -> None:
    session = open_session(args)
    session.require(schema.Permission.VIEW_DASHBOARD)
    today = validators.parse_date(args.today) if args.today else datetime.date.today()
    students = session.get_students()
    records = session.get_records()
    threshold = session.get_settings().attendance_threshold

    counts = rates.daily_counts(records, today)
    rich.print(
        f"[bold]{config.settings.school_name}[/bold]  {today.isoformat()}  "
        f"students: {len(students)}  present: {counts.present}  "
        f"absent: {counts.absent}  late: {counts.late}  excused: {counts.excused}"
    )

    trend = Table(title="Last 7 days")
    for column in ["date", "present", "absent", "late", "excused"]:
        trend.add_column(column)
    for stat in rates.weekly_trend(records, today):
        trend.add_row(
            stat.day.isoformat(),
            str(stat.present),
            str(stat.absent),
            str(stat.late),
            str(stat.excused),
        )
    rich.print(trend)

    board = rates.classify(students, records, threshold)
    _print_student_rates(f"At risk (below {threshold}%)", board.at_risk)
    _print_student_rates("Top performers", board.top_performers)
    print_report(args.report, summary.school_payload(students, records))


def _print_student_rates(title: str, entries: list[rates.StudentRate]) -> None:
    table = Table(title=title)
    table.add_column("name")
    table.add_column("grade")
    table.add_column("rate", justify="right")
    for entry in entries:
        table.add_row(entry.student.name, entry.student.grade, entry.rate.label)
    rich.print(table)


def show_history(args: argparse.Namespace) -> None:
    session = open_session(args)
    student_id = args.student_id or session.single_student_id
    student = None if student_id is None else session.get_student(student_id)
    if student is None:
        rich.print("[red]Student not found.[/red]")
        sys.exit(1)
    history = session.get_student_history(student.student_id)
    rate = rates.compute_rate(history)
    badges = ", ".join(badge.value for badge in rates.badges(rate))
    rich.print(f"[bold]{student.name}[/bold] ({student.grade})  {rate.label}  {badges}")
    table = Table()
    table.add_column("date")
    table.add_column("status")
    table.add_column("note")
    for record in history:
        table.add_row(record.iso_date, schema.STATUS_LABELS[record.status], record.note or "")
    rich.print(table)
    print_report(args.report, summary.student_payload(student, history))


def show_monthly(args: argparse.Namespace) -> None:
    session = open_session(args)
    session.require(schema.Permission.VIEW_REPORTS)
    students = session.get_students()
    days = rates.month_days(args.year, args.month)
    records = session.get_records(start_date=days[0], end_date=days[-1])
    grid = rates.monthly_grid(students, records, args.year, args.month, args.grade)
    table = Table(title=f"{config.settings.school_name} {args.year}-{args.month:02}")
    for column in ["name", "grade", "present", "late", "absent", "excused"]:
        table.add_column(column)
    for row in grid.rows:
        table.add_row(
            row.student.name,
            row.student.grade,
            str(row.present),
            str(row.late),
            str(row.absent),
            str(row.excused),
        )
    rich.print(table)
    if args.excel is not None:
        cohorts = rates.cohort_summary(students, records)
        excel.write_monthly_report(grid, args.excel, cohorts)
        rich.print(f"Wrote {args.excel}")


def export_csv(args: argparse.Namespace) -> None:
    session = open_session(args)
    session.require(schema.Permission.VIEW_REPORTS)
    csv_path = args.csv_path or pathlib.Path.cwd() / csv_export.export_file_name()
    count = csv_export.write_csv(session.dbase, csv_path, session.school_id)
    rich.print(f"Exported {count} records to {csv_path}")


def set_threshold(args: argparse.Namespace) -> None:
    app_settings = open_session(args).save_settings(args.value)
    rich.print(f"Attendance threshold set to {app_settings.attendance_threshold}%.")


def write_backup(args: argparse.Namespace) -> None:
    backup_dir = args.backup_dir or config.settings.backup_dir or pathlib.Path.cwd()
    session = open_admin_session(args)
    backup_path = backup.write_backup_file(session.dbase, backup_dir)
    rich.print(f"Backup written to {backup_path}")


def restore_backup(args: argparse.Namespace) -> None:
    """Restore a backup. A database without users can be restored without a login."""
    dbase = open_dbase()
    if dbase.load("users"):
        if args.username is None:
            raise access.AccessDenied(
                "Log in as a system administrator with -u to restore a backup."
            )
        dbase = open_admin_session(args).dbase
    if not backup.restore_backup_file(dbase, args.backup_path):
        rich.print("[red]Could not restore the backup. Check that the file is valid.[/red]")
        sys.exit(1)
    rich.print("Backup restored.")


def clear_data(args: argparse.Namespace) -> None:
    if not args.yes:
        rich.print("[yellow]Pass --yes to erase all data.[/yellow]")
        sys.exit(1)
    backup.clear_all_data(open_admin_session(args).dbase)
    rich.print("All data erased.")


def set_args(args: Optional[argparse.Namespace] = None) -> argparse.Namespace:
    """Read args from command line or use preset args (for testing)."""
    if args is None:
        args = build_parser().parse_args()
    config.settings.update_from_args(args)
    config.configure_logging(config.settings.log_level)
    return args


def main() -> None:
    """Function to run the app, used for the pyproject entry point."""
    try:
        args = set_args()
        if args.func is None:
            build_parser().print_help()
            return
        args.func(args)
    except (
        validators.ValidationError,
        access.AccessDenied,
        database.DBaseError,
        config.ConfigError,
    ) as err:
        rich.print(f"[red]{err}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
