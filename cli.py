import typer
from rich.console import Console
from rich.table import Table
from typing import List, Optional
from datetime import datetime, date, timedelta

from learnplan.config import settings
from learnplan.database import SessionLocal, init_db
from learnplan.crud import (
    create_child, require_child, delete_child,
    create_subject, create_topic, create_flashcard, archive_flashcard,
    create_time_block, get_time_blocks, delete_time_block,
    create_session, plan_session, schedule_session, unschedule_session,
    get_catch_ups
)
from learnplan.engine import SchedulingEngine
from learnplan.errors import PlannerError
from learnplan.log import configure_logging
from learnplan.models.enums import CapacityStatus, CatchUpStatus, CommitmentType, DAY_NAMES
from learnplan.schemas import ChildCreate, DateRange, SessionCreate, TimeBlockCreate
from learnplan.timeutil import parse_time

app = typer.Typer(help="Learning planner CLI - capacity-aware scheduling and spaced repetition for kids")
console = Console()

STATUS_STYLE = {
    CapacityStatus.OK: "green",
    CapacityStatus.WARNING: "yellow",
    CapacityStatus.OVER: "red",
}


@app.callback()
def main(log_level: str = typer.Option(settings.log_level, help="Log level for scheduling decisions")):
    configure_logging(log_level)


def parse_date(value: Optional[str]) -> date:
    """YYYY-MM-DD, defaulting to today"""
    if not value:
        return date.today()
    return datetime.strptime(value, "%Y-%m-%d").date()


def fail(error: Exception):
    console.print(f"[red]✗[/red] {error}")
    raise typer.Exit(code=1)


@app.command()
def init():
    """Initialize database tables"""
    init_db()
    console.print("[green]✓[/green] Database initialized successfully!")

@app.command()
def reset_db():
    """Delete all data and reinitialize database (WARNING: irreversible!)"""
    confirm = typer.confirm("⚠️  This will DELETE ALL DATA. Are you sure?")
    if not confirm:
        console.print("[yellow]Cancelled.[/yellow]")
        return

    from learnplan.database import engine, Base
    import learnplan.models  # noqa: F401
    console.print("[yellow]Dropping all tables...[/yellow]")
    Base.metadata.drop_all(bind=engine)
    console.print("[yellow]Recreating tables...[/yellow]")
    Base.metadata.create_all(bind=engine)
    console.print("[green]✓[/green] Database reset complete! All data deleted.")

@app.command()
def add_child(
    name: str = typer.Option(..., prompt="Child's name"),
    grade: Optional[str] = typer.Option(None, help="Grade/Standard")
):
    """Create a child profile"""
    db = SessionLocal()
    try:
        child = create_child(db, ChildCreate(name=name, grade=grade))
        console.print(f"[green]✓[/green] Child created! ID: {child.id}")
    finally:
        db.close()

@app.command()
def add_topic(
    child_id: int = typer.Option(..., prompt="Child ID"),
    subject: str = typer.Option(..., prompt="Subject name"),
    title: str = typer.Option(..., prompt="Topic title"),
    minutes: int = typer.Option(30, help="Typical session length in minutes")
):
    """Create a subject and a topic under it"""
    db = SessionLocal()
    try:
        require_child(db, child_id)
        db_subject = create_subject(db, child_id, subject)
        topic = create_topic(db, db_subject.id, title, minutes)
        console.print(f"[green]✓[/green] Topic created! ID: {topic.id} ({subject}: {title})")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def remove_child(child_id: int):
    """Delete a child with all blocks, sessions, catch-ups and reviews"""
    if not typer.confirm(f"⚠️  Delete child {child_id} and everything it owns?"):
        console.print("[yellow]Cancelled.[/yellow]")
        return

    db = SessionLocal()
    try:
        if delete_child(db, child_id):
            console.print(f"[green]✓[/green] Child {child_id} deleted")
        else:
            fail(f"Child {child_id} not found")
    finally:
        db.close()

@app.command()
def add_card(
    topic_id: int = typer.Option(..., prompt="Topic ID"),
    front: str = typer.Option(..., prompt="Front"),
    back: str = typer.Option(..., prompt="Back")
):
    """Add a flashcard to a topic"""
    db = SessionLocal()
    try:
        card = create_flashcard(db, topic_id, front, back)
        console.print(f"[green]✓[/green] Flashcard created! ID: {card.id}")
    finally:
        db.close()

@app.command()
def archive_card(flashcard_id: int):
    """Archive a flashcard; existing reviews keep their history"""
    db = SessionLocal()
    try:
        archive_flashcard(db, flashcard_id)
        console.print(f"[green]✓[/green] Flashcard {flashcard_id} archived")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def add_block(
    child_id: int = typer.Option(..., prompt="Child ID"),
    day: int = typer.Option(..., prompt="Day of week (1=Monday .. 7=Sunday)"),
    start: str = typer.Option(..., prompt="Start time (HH:MM)"),
    end: str = typer.Option(..., prompt="End time (HH:MM)"),
    label: str = typer.Option("", help="Label, e.g. 'Morning study'"),
    commitment: CommitmentType = typer.Option(CommitmentType.PREFERRED, help="fixed, preferred or flexible")
):
    """Add a weekly time block"""
    db = SessionLocal()
    try:
        existing = get_time_blocks(db, child_id)
        block = create_time_block(db, TimeBlockCreate(
            child_id=child_id,
            day_of_week=day,
            start_time=parse_time(start),
            end_time=parse_time(end),
            label=label,
            commitment_type=commitment
        ))
        console.print(f"[green]✓[/green] Time block created! ID: {block.id}")
        console.print(f"  {block.day_name} {block.start_time:%H:%M}-{block.end_time:%H:%M} ({block.duration_minutes} min)")
        for other in existing:
            if block.overlaps_with(other):
                console.print(f"[yellow]⚠️  Overlaps block {other.id} "
                              f"({other.start_time:%H:%M}-{other.end_time:%H:%M}); its minutes count twice[/yellow]")
    except ValueError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def remove_block(block_id: int):
    """Delete a weekly time block"""
    db = SessionLocal()
    try:
        if not delete_time_block(db, block_id):
            fail(f"Time block {block_id} not found")
        console.print(f"[green]✓[/green] Time block {block_id} deleted")
    finally:
        db.close()

@app.command()
def blocks(child_id: int):
    """List a child's weekly time blocks"""
    db = SessionLocal()
    try:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Day", style="cyan")
        table.add_column("Time", style="green")
        table.add_column("Minutes", style="blue", justify="right")
        table.add_column("Label", style="yellow")
        for block in get_time_blocks(db, child_id):
            table.add_row(
                str(block.id),
                block.day_name,
                f"{block.start_time:%H:%M}-{block.end_time:%H:%M}",
                str(block.duration_minutes),
                block.label
            )
        console.print(table)
    finally:
        db.close()

@app.command()
def add_session(
    child_id: int = typer.Option(..., prompt="Child ID"),
    topic_id: int = typer.Option(..., prompt="Topic ID"),
    minutes: int = typer.Option(..., prompt="Estimated minutes"),
    commitment: CommitmentType = typer.Option(CommitmentType.PREFERRED, help="fixed, preferred or flexible")
):
    """Create a backlog learning session"""
    db = SessionLocal()
    try:
        session = create_session(db, SessionCreate(
            child_id=child_id,
            topic_id=topic_id,
            estimated_minutes=minutes,
            commitment_type=commitment
        ))
        console.print(f"[green]✓[/green] Session created in backlog! ID: {session.id}")
    except ValueError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def plan(session_id: int):
    """Move a backlog session to planned"""
    db = SessionLocal()
    try:
        session = plan_session(db, session_id)
        console.print(f"[green]✓[/green] Session {session.id} is {session.status.value}")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def schedule(
    session_id: int,
    start: str = typer.Option(..., help="Start time (HH:MM)"),
    on: Optional[str] = typer.Option(None, "--date", help="Date (YYYY-MM-DD); weekly when omitted"),
    day: Optional[int] = typer.Option(None, help="Day of week for a weekly placement")
):
    """Schedule a planned session into a slot"""
    db = SessionLocal()
    try:
        engine = SchedulingEngine.for_db(db)
        session = engine.stores.sessions.get(session_id)
        scheduled_date = parse_date(on) if on else None
        day_of_week = scheduled_date.isoweekday() if scheduled_date else day
        if day_of_week is None:
            fail("Give either --date or --day")
        start_time = parse_time(start)
        end_time = (datetime.combine(date.today(), start_time) + timedelta(minutes=session.estimated_minutes)).time()
        schedule_session(db, session_id, day_of_week, start_time, end_time, scheduled_date)
        console.print(f"[green]✓[/green] Session {session_id} scheduled {DAY_NAMES[day_of_week]} "
                      f"{start_time:%H:%M}-{end_time:%H:%M}" + (f" on {scheduled_date}" if scheduled_date else " weekly"))
    except PlannerError as e:
        if e.retryable:
            console.print("[yellow]Slot was taken meanwhile - run 'suggest' again.[/yellow]")
        fail(e)
    finally:
        db.close()

@app.command()
def unschedule(session_id: int):
    """Move a scheduled session back to planned"""
    db = SessionLocal()
    try:
        unschedule_session(db, session_id)
        console.print(f"[green]✓[/green] Session {session_id} unscheduled")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def capacity(
    child_id: int,
    start: Optional[str] = typer.Option(None, help="First date (YYYY-MM-DD), default: today"),
    days: int = typer.Option(7, help="Number of days")
):
    """Show available versus scheduled minutes per day"""
    db = SessionLocal()
    try:
        first = parse_date(start)
        engine = SchedulingEngine.for_db(db)
        report = engine.capacity.analyze(child_id, DateRange.of(first, first + timedelta(days=days - 1)))

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Date", style="cyan", width=12)
        table.add_column("Day")
        table.add_column("Available", justify="right")
        table.add_column("Scheduled", justify="right")
        table.add_column("Remaining", justify="right")
        table.add_column("Used", justify="right")
        table.add_column("Status")

        for day in report:
            style = STATUS_STYLE[day.status]
            table.add_row(
                str(day.date),
                DAY_NAMES[day.day_of_week],
                f"{day.available_minutes} min",
                f"{day.scheduled_minutes} min",
                f"{day.remaining_minutes} min",
                f"{day.utilization_percent:.0f}%",
                f"[{style}]{day.status.value}[/{style}]"
            )
        console.print(table)
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def suggest(
    session_id: int,
    original: Optional[str] = typer.Option(None, help="Original date (YYYY-MM-DD), default: today"),
    horizon: int = typer.Option(settings.slot_horizon_days, help="Days to search"),
    limit: int = typer.Option(settings.slot_max_results, help="Maximum suggestions")
):
    """Suggest replacement slots for a session"""
    db = SessionLocal()
    try:
        engine = SchedulingEngine.for_db(db)
        candidates = engine.slots.suggest_slots(session_id, parse_date(original), horizon, limit)
        if not candidates:
            console.print("[yellow]No free slot fits this session in the search window.[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Date", style="cyan", width=12)
        table.add_column("Day")
        table.add_column("Time", style="green")
        table.add_column("Capacity", justify="right")
        table.add_column("Difficulty", justify="right")
        table.add_column("")
        for c in candidates:
            table.add_row(
                str(c.date),
                c.day_name,
                f"{c.start_time:%H:%M}-{c.end_time:%H:%M}",
                f"{c.capacity_used:.0f}%",
                str(c.difficulty),
                "[bold green]recommended[/bold green]" if c.recommended else ""
            )
        console.print(table)
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def auto_reschedule(
    child_id: int,
    on: Optional[str] = typer.Option(None, "--date", help="Day to clear (YYYY-MM-DD), default: today"),
    session_ids: Optional[List[int]] = typer.Option(None, "--session", help="Only these sessions (repeatable)")
):
    """Move flexible sessions off a day when an easy slot exists"""
    db = SessionLocal()
    try:
        engine = SchedulingEngine.for_db(db)
        moved = engine.auto_reschedule_flexible(child_id, parse_date(on), session_ids or None)
        if not moved:
            console.print("[yellow]No session could be moved to an easy slot.[/yellow]")
            return
        for item in moved:
            console.print(f"[green]✓[/green] Session {item.session_id} -> {item.slot.date} "
                          f"{item.slot.start_time:%H:%M}-{item.slot.end_time:%H:%M}")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def miss(
    session_id: int,
    on: Optional[str] = typer.Option(None, "--date", help="Missed date (YYYY-MM-DD), default: today"),
    reason: Optional[str] = typer.Option(None, help="Why it was missed")
):
    """Record a missed session in the catch-up lane"""
    db = SessionLocal()
    try:
        engine = SchedulingEngine.for_db(db)
        entry = engine.catch_up.record_missed(session_id, parse_date(on), reason)
        console.print(f"[green]✓[/green] Catch-up {entry.id} created (priority {entry.priority} - {entry.priority_label})")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def catch_up(child_id: int, all_entries: bool = typer.Option(False, "--all", help="Include closed entries")):
    """Show the catch-up lane"""
    db = SessionLocal()
    try:
        today = date.today()
        entries = get_catch_ups(db, child_id, None if all_entries else CatchUpStatus.PENDING)
        if not entries:
            console.print("[green]Catch-up lane is empty.[/green]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim")
        table.add_column("Priority")
        table.add_column("Missed", style="cyan")
        table.add_column("Days ago", justify="right")
        table.add_column("Minutes", justify="right")
        table.add_column("Status")
        table.add_column("Reason", style="yellow")
        for entry in entries:
            table.add_row(
                str(entry.id),
                f"{entry.priority} {entry.priority_label}",
                str(entry.missed_date),
                str(entry.days_since_missed(today)),
                str(entry.estimated_minutes),
                entry.status.value,
                entry.reason or ""
            )
        console.print(table)
    finally:
        db.close()

@app.command()
def redistribute(
    child_id: int,
    max_sessions: int = typer.Option(settings.catch_up_redistribute_max, "--max", help="Maximum entries to place")
):
    """Place pending catch-up sessions into free slots"""
    db = SessionLocal()
    try:
        engine = SchedulingEngine.for_db(db)
        summary = engine.catch_up.redistribute(child_id, max_sessions)
        console.print(f"[green]✓[/green] Reassigned {summary.reassigned_count}, unresolved {summary.unresolved_count}")
        for detail in summary.details:
            if detail.resolved:
                console.print(f"  Catch-up {detail.catch_up_id} -> session {detail.new_session_id} "
                              f"on {detail.slot.date} {detail.slot.start_time:%H:%M}-{detail.slot.end_time:%H:%M}")
            else:
                console.print(f"  [yellow]Catch-up {detail.catch_up_id}: no free slot[/yellow]")
    except PlannerError as e:
        if e.retryable:
            console.print("[yellow]A slot was taken meanwhile - run redistribute again.[/yellow]")
        fail(e)
    finally:
        db.close()

@app.command()
def set_priority(catch_up_id: int, priority: int):
    """Override a catch-up entry's priority (1=most urgent .. 5)"""
    db = SessionLocal()
    try:
        entry = SchedulingEngine.for_db(db).catch_up.set_priority(catch_up_id, priority)
        console.print(f"[green]✓[/green] Catch-up {entry.id} priority is now {entry.priority}")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def cancel(catch_up_id: int, reason: Optional[str] = typer.Option(None, help="Cancellation note")):
    """Cancel a pending catch-up entry"""
    db = SessionLocal()
    try:
        SchedulingEngine.for_db(db).catch_up.cancel(catch_up_id, reason)
        console.print(f"[green]✓[/green] Catch-up {catch_up_id} cancelled")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def finish(session_id: int):
    """Mark a session done and start flashcard reviews for its topic"""
    db = SessionLocal()
    try:
        reviews = SchedulingEngine.for_db(db).finish_session(session_id)
        console.print(f"[green]✓[/green] Session {session_id} done, {len(reviews)} reviews started")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def grade(
    review_id: int,
    outcome: str = typer.Argument(..., help="again, hard, good, easy or 0-5"),
    child_id: Optional[int] = typer.Option(None, help="Reviewing child (ownership check)")
):
    """Grade a flashcard review"""
    db = SessionLocal()
    try:
        review = SchedulingEngine.for_db(db).reviews.grade_review(review_id, outcome, child_id=child_id)
        console.print(f"[green]✓[/green] Review {review.id}: {review.status.value}")
        console.print(f"  Next review: {review.due_date} (in {review.interval_days} days)")
        console.print(f"  Ease: {review.ease_factor:.2f}")
    except PlannerError as e:
        fail(e)
    finally:
        db.close()

@app.command()
def due(child_id: int):
    """Show today's review queue"""
    db = SessionLocal()
    try:
        today = date.today()
        queue = SchedulingEngine.for_db(db).reviews.review_queue(child_id, today)
        if not queue:
            console.print("[green]Nothing to review today.[/green]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Review", style="dim")
        table.add_column("Card", style="green")
        table.add_column("Status")
        table.add_column("Due", style="yellow")
        for review in queue:
            overdue = -review.days_until_due(today)
            table.add_row(
                str(review.id),
                review.flashcard.front[:50],
                review.status.value,
                f"{review.due_date}" + (f" ({overdue}d overdue)" if overdue > 0 else "")
            )
        console.print(table)
    finally:
        db.close()

if __name__ == "__main__":
    app()
