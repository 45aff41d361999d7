"""Command-line interface for readtrack.

Built with Typer for commands and Rich for beautiful output.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .catalog import DatabaseBookCatalog
from .config import get_config
from .db import get_db
from .db.schemas import BookCreate, BookUpdate
from .errors import ReadingError
from .lifecycle import SessionManager, get_session_manager
from .sessions.schemas import SessionResponse, SessionStatus, validate_request
from .stats import GoalTracker, StatsAggregator

# Create the main app
app = typer.Typer(
    name="readtrack",
    help="Track reading sessions, progress, streaks and statistics.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
book_app = typer.Typer(help="Manage the local book catalog.")
app.add_typer(book_app, name="book")

goals_app = typer.Typer(help="Manage reading goals.")
app.add_typer(goals_app, name="goals")

# Rich console for pretty output
console = Console()
err_console = Console(stderr=True)

UserOption = typer.Option(
    ..., "--user", "-u", envvar="READTRACK_USER", help="User ID (or READTRACK_USER)"
)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn engine errors into a red error line and exit code 1."""
    try:
        yield
    except ReadingError as e:
        print_error(str(e))
        raise typer.Exit(1)


def get_manager() -> SessionManager:
    """Get the session manager on the configured database."""
    return get_session_manager(get_db(str(get_config().db_path)))


def progress_bar(percent: float, width: int = 10) -> str:
    """Render a text progress bar."""
    filled = int((min(percent, 100) / 100) * width)
    return "█" * filled + "░" * (width - filled)


def format_duration(seconds: int) -> str:
    """Format seconds as '1h 5m' or '12m'."""
    minutes = seconds // 60
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m"


def format_session_table(
    sessions: list[SessionResponse],
    catalog: DatabaseBookCatalog,
    title: str = "Sessions",
) -> Table:
    """Create a rich table for displaying sessions."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Session", style="dim", no_wrap=True)
    table.add_column("Book", style="cyan", max_width=35)
    table.add_column("Status", style="yellow")
    table.add_column("Progress", justify="center")
    table.add_column("Page", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("Last Read")

    for s in sessions:
        page = f"{s.current_page}/{s.page_count}" if s.page_count else f"p.{s.current_page}"
        table.add_row(
            s.id[:8],
            (catalog.title(s.book_id) or s.book_id)[:35],
            s.status.value,
            f"[{progress_bar(s.progress)}] {s.progress}%",
            page,
            format_duration(s.total_reading_time) if s.total_reading_time else "-",
            s.last_read_at.strftime("%Y-%m-%d %H:%M"),
        )

    return table


def print_session(session: SessionResponse, message: str) -> None:
    """Print a one-line session summary after a success message."""
    print_success(message)
    print_info(
        f"Session {session.id} | {session.status.value} | page {session.current_page}"
        f" | {session.progress}%"
    )


# ============================================================================
# Global Options
# ============================================================================


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Track reading sessions, progress, streaks and statistics."""
    config = get_config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"readtrack {__version__}")


# ============================================================================
# Book Catalog Commands
# ============================================================================


@book_app.command("add")
def book_add(
    title: str = typer.Argument(..., help="Book title"),
    author: str = typer.Option(..., "--author", "-a", help="Primary author"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="Page count"),
    genre: Optional[list[str]] = typer.Option(None, "--genre", "-g", help="Genre (repeatable)"),
    co_author: Optional[list[str]] = typer.Option(
        None, "--co-author", help="Additional author (repeatable)"
    ),
) -> None:
    """Add a book to the local catalog."""
    with handle_errors():
        data = validate_request(
            BookCreate,
            title=title,
            author=author,
            page_count=pages,
            genres=genre or [],
            authors=[author, *co_author] if co_author else [],
        )
    db = get_db(str(get_config().db_path))
    book = db.create_book(data)
    print_success(f"Added: {book.title} by {book.author}")
    print_info(f"Book ID: {book.id}")


@book_app.command("update")
def book_update(
    book_id: str = typer.Argument(..., help="Book ID"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="New primary author"),
    pages: Optional[int] = typer.Option(None, "--pages", "-p", help="New page count"),
    genre: Optional[list[str]] = typer.Option(None, "--genre", "-g", help="Replace genres (repeatable)"),
) -> None:
    """Correct a book's catalog facts.

    Open sessions pick up a new page count on their next progress update.
    """
    changes = {"title": title, "author": author, "page_count": pages, "genres": genre or None}
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        print_error("Nothing to update. Pass --title, --author, --pages or --genre.")
        raise typer.Exit(1)

    with handle_errors():
        data = validate_request(BookUpdate, **changes)
    db = get_db(str(get_config().db_path))
    book = db.update_book(book_id, data)
    if book is None:
        print_error(f"Book not found: {book_id}")
        raise typer.Exit(1)
    print_success(f"Updated: {book.title} by {book.author}")


@book_app.command("list")
def book_list() -> None:
    """List books in the local catalog."""
    db = get_db(str(get_config().db_path))
    books = db.get_all_books()

    if not books:
        console.print("[dim]No books in the catalog.[/dim]")
        console.print("[dim]Use 'readtrack book add \"Title\" --author NAME' to add one.[/dim]")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Pages", justify="right")
    table.add_column("Genres")

    for book in books:
        table.add_row(
            book.id,
            book.title,
            book.author,
            str(book.page_count) if book.page_count is not None else "-",
            ", ".join(book.get_genres()) or "-",
        )

    console.print(table)


# ============================================================================
# Session Lifecycle Commands
# ============================================================================


@app.command()
def start(
    book_id: str = typer.Argument(..., help="Book ID"),
    user: str = UserOption,
    page: int = typer.Option(0, "--page", "-p", help="Page to start from"),
) -> None:
    """Start reading a book."""
    manager = get_manager()
    with handle_errors():
        session = manager.start_session(user, book_id, start_page=page)
    print_session(session, "Reading session started")


@app.command()
def progress(
    session_id: str = typer.Argument(..., help="Session ID"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Page reached"),
    pages: Optional[int] = typer.Option(None, "--pages", "-n", help="Pages read since last update"),
    minutes: int = typer.Option(0, "--minutes", "-m", help="Minutes read since last update"),
    note: Optional[str] = typer.Option(None, "--note", help="Note at the resulting page"),
) -> None:
    """Record reading progress."""
    manager = get_manager()
    with handle_errors():
        session = manager.update_progress(
            session_id,
            current_page=page,
            pages_read_delta=pages,
            reading_time_delta=minutes * 60,
            note=note,
        )
    if session.status == SessionStatus.COMPLETED:
        print_session(session, "Finished the book!")
    else:
        print_session(session, "Progress saved")


@app.command()
def pause(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Pause a reading session."""
    manager = get_manager()
    with handle_errors():
        session = manager.pause_session(session_id)
    print_session(session, "Session paused")


@app.command()
def resume(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Resume a paused reading session."""
    manager = get_manager()
    with handle_errors():
        session = manager.resume_session(session_id)
    print_session(session, "Session resumed")


@app.command()
def complete(
    session_id: str = typer.Argument(..., help="Session ID"),
    rating: Optional[int] = typer.Option(None, "--rating", "-r", help="Rating 1-5"),
    review: Optional[str] = typer.Option(None, "--review", help="Short review"),
) -> None:
    """Mark a book as finished."""
    manager = get_manager()
    with handle_errors():
        session = manager.complete_session(session_id, rating=rating, review=review)
    print_session(session, "Book completed")


@app.command()
def abandon(session_id: str = typer.Argument(..., help="Session ID")) -> None:
    """Stop reading a book without finishing it."""
    manager = get_manager()
    with handle_errors():
        session = manager.abandon_session(session_id)
    print_session(session, "Session abandoned")


@app.command()
def view(
    book_id: str = typer.Argument(..., help="Book ID"),
    user: str = UserOption,
) -> None:
    """Record that you opened a book."""
    manager = get_manager()
    with handle_errors():
        session = manager.record_view(user, book_id)
    print_info(f"Viewed {session.view_count} time(s)")


# ============================================================================
# Read Commands
# ============================================================================


@app.command()
def current(
    user: str = UserOption,
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Max sessions to show"),
) -> None:
    """Show books currently being read."""
    manager = get_manager()
    sessions = manager.get_current_sessions(user, limit=limit)

    if not sessions:
        console.print("[dim]No books currently being read.[/dim]")
        console.print("[dim]Use 'readtrack start BOOK_ID' to begin reading.[/dim]")
        return

    console.print(format_session_table(sessions, manager.catalog, "Currently Reading"))


@app.command()
def history(
    user: str = UserOption,
    status: Optional[SessionStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    sort: str = typer.Option("last_read_at", "--sort", help="Sort field"),
    order: str = typer.Option("desc", "--order", help="asc or desc"),
    page: int = typer.Option(1, "--page", "-p", help="Page number"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Entries per page"),
) -> None:
    """Show reading history."""
    manager = get_manager()
    with handle_errors():
        result = manager.get_history(
            user, status=status, sort_by=sort, sort_order=order, page=page, limit=limit
        )

    if not result.sessions:
        console.print("[dim]No reading history.[/dim]")
        return

    console.print(format_session_table(result.sessions, manager.catalog, "Reading History"))
    print_info(f"Page {result.page} of {result.pages} ({result.total} sessions)")


@app.command()
def stats(user: str = UserOption) -> None:
    """Show reading statistics."""
    manager = get_manager()
    aggregator = StatsAggregator(
        manager.db,
        catalog=manager.catalog,
        synchronizer=manager.sync,
        config=manager.config,
    )
    result = aggregator.get_statistics(user)

    if result.stale:
        console.print("[bold yellow]Warning:[/bold yellow] statistics may be out of date")

    table = Table(title="Reading Statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Books read", str(result.total_books_read))
    table.add_row("Pages read", str(result.total_pages_read))
    table.add_row("Reading time", format_duration(result.total_reading_time))
    table.add_row("Average rating", f"{result.average_rating}" if result.average_rating else "-")
    table.add_row("Average speed", f"{result.average_reading_speed} pages/h")
    table.add_row("Reading now", str(result.current_sessions))
    table.add_row("Current streak", f"{result.current_streak} days ({result.streak_status.value})")
    table.add_row("Longest streak", f"{result.longest_streak} days")
    console.print(table)

    if result.favorite_genres:
        genres = ", ".join(f"{g.genre} ({g.count})" for g in result.favorite_genres)
        console.print(f"[cyan]Favorite genres:[/cyan] {genres}")
    if result.favorite_authors:
        authors = ", ".join(f"{a.author} ({a.count})" for a in result.favorite_authors)
        console.print(f"[cyan]Favorite authors:[/cyan] {authors}")


@app.command()
def shelf(user: str = UserOption) -> None:
    """Show currently-reading and finished shelves."""
    manager = get_manager()
    bookshelf = manager.sync.get_bookshelf(user)

    lines = ["[bold]Currently reading[/bold]"]
    for entry in bookshelf.currently_reading:
        title = manager.catalog.title(entry.book_id) or entry.book_id
        lines.append(f"  {title} [{progress_bar(entry.progress)}] {entry.progress}%")
    if not bookshelf.currently_reading:
        lines.append("  [dim]-[/dim]")

    lines.append("")
    lines.append("[bold]Finished[/bold]")
    for entry in bookshelf.finished:
        title = manager.catalog.title(entry.book_id) or entry.book_id
        stars = "★" * entry.rating if entry.rating else ""
        lines.append(f"  {title} ({entry.completed_at:%Y-%m-%d}) {stars}")
    if not bookshelf.finished:
        lines.append("  [dim]-[/dim]")

    lines.append("")
    lines.append(
        f"Books: {bookshelf.stats.books_read} | Pages: {bookshelf.stats.pages_read}"
        f" | Streak: {bookshelf.stats.current_streak}"
    )
    console.print(Panel("\n".join(lines), title="Bookshelf"))


# ============================================================================
# Annotation Commands
# ============================================================================


@app.command()
def note(
    session_id: str = typer.Argument(..., help="Session ID"),
    content: str = typer.Argument(..., help="Note text"),
    page: Optional[int] = typer.Option(None, "--page", "-p", help="Page (default: current)"),
) -> None:
    """Add a note to a reading session."""
    manager = get_manager()
    with handle_errors():
        created = manager.annotations.add_note(session_id, content, page=page)
    print_success(f"Note added on page {created.page}")


@app.command()
def bookmark(
    session_id: str = typer.Argument(..., help="Session ID"),
    page: int = typer.Argument(..., help="Page to bookmark"),
    note_text: Optional[str] = typer.Option(None, "--note", help="Bookmark note"),
    remove: bool = typer.Option(False, "--remove", help="Remove the bookmark instead"),
) -> None:
    """Bookmark a page (or remove a bookmark)."""
    manager = get_manager()
    with handle_errors():
        if remove:
            if manager.annotations.remove_bookmark(session_id, page):
                print_success(f"Bookmark on page {page} removed")
            else:
                print_info(f"No bookmark on page {page}")
            return
        manager.annotations.add_bookmark(session_id, page, note=note_text)
    print_success(f"Bookmarked page {page}")


@app.command()
def highlight(
    session_id: str = typer.Argument(..., help="Session ID"),
    page: int = typer.Argument(..., help="Page"),
    text: str = typer.Argument(..., help="Highlighted text"),
    color: str = typer.Option("#FFEB3B", "--color", "-c", help="Hex color"),
    note_text: Optional[str] = typer.Option(None, "--note", help="Highlight note"),
) -> None:
    """Highlight a passage."""
    manager = get_manager()
    with handle_errors():
        created = manager.annotations.add_highlight(
            session_id, page, text, color=color, note=note_text
        )
    print_success(f"Highlight added on page {created.page}")


# ============================================================================
# Goal Commands
# ============================================================================


@goals_app.command("set")
def goals_set(
    user: str = UserOption,
    books_per_year: Optional[int] = typer.Option(None, "--books-per-year", help="Books per year"),
    books_per_month: Optional[int] = typer.Option(
        None, "--books-per-month", help="Books per month"
    ),
    pages_per_day: Optional[int] = typer.Option(None, "--pages-per-day", help="Pages per day"),
    minutes_per_day: Optional[int] = typer.Option(
        None, "--minutes-per-day", help="Minutes per day"
    ),
) -> None:
    """Set reading goals."""
    manager = get_manager()
    tracker = GoalTracker(manager.db, manager.config)
    with handle_errors():
        goals = tracker.set_goals(
            user,
            books_per_year=books_per_year,
            books_per_month=books_per_month,
            pages_per_day=pages_per_day,
            minutes_per_day=minutes_per_day,
        )
    print_success(
        f"Goals: {goals.books_per_year} books/year, {goals.monthly_books_target} books/month,"
        f" {goals.pages_per_day} pages/day"
    )


@goals_app.command("show")
def goals_show(user: str = UserOption) -> None:
    """Show reading goals and progress."""
    manager = get_manager()
    tracker = GoalTracker(manager.db, manager.config)
    goals = tracker.get_progress(user)

    table = Table(title="Reading Goals", show_header=True, header_style="bold magenta")
    table.add_column("Period", style="cyan")
    table.add_column("Type")
    table.add_column("Progress", justify="center")
    table.add_column("Target", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Status")

    for goal in goals:
        if goal.is_complete:
            status = "[bold green]Complete![/bold green]"
        elif goal.progress_percent >= 50:
            status = "[yellow]Making Progress[/yellow]"
        else:
            status = "[dim]In Progress[/dim]"

        table.add_row(
            goal.period_label,
            goal.goal_type.value.title(),
            f"[{progress_bar(goal.progress_percent, 15)}] {goal.progress_percent}%",
            str(goal.target),
            str(goal.remaining),
            status,
        )

    console.print(table)


if __name__ == "__main__":
    app()
