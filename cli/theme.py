"""Unified Rich theme and reusable UI helper functions for the CLI."""

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from models.book import Book
from models.conversation import Message
from models.enums import MessageRole

BOOK_THEME = Theme({
    "app.title": "bold",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "info": "blue",
    "muted": "dim",
    "accent": "cyan",
    "stat.label": "dim",
    "stat.value": "bold",
    "chapter.name": "blue",
    "role.user": "bold green",
    "role.assistant": "bold cyan",
})


def get_console() -> Console:
    """Return a Console instance with the book theme applied."""
    return Console(theme=BOOK_THEME)


def app_header(title: str = "bookchat") -> Rule:
    """Return a Rule element for the application header banner."""
    return Rule(title=f"[bold]{title}[/]", style="dim")


def command_panel(title: str, fields: dict[str, str]) -> Panel:
    """Return a Panel displaying command parameters.

    Args:
        title: Panel title (e.g. "Add book").
        fields: Ordered dict of label -> value pairs.
    """
    lines = []
    for label, value in fields.items():
        lines.append(f"  [stat.label]{label}:[/] [stat.value]{escape(str(value))}[/]")
    body = "\n".join(lines)
    return Panel(body, title=f"[bold]{title}[/]", box=box.ROUNDED, border_style="dim", padding=(0, 2))


def success_panel(title: str, body: str) -> Panel:
    """Return a green-bordered Panel for success results."""
    return Panel(body, title=f"[success]{title}[/]", box=box.ROUNDED, border_style="green", padding=(0, 2))


def _position_line(book: Book) -> str:
    if book.total_pages:
        position = f"page {book.current_page} of {book.total_pages} ({book.progress_percentage}%)"
    else:
        position = f"page {book.current_page}"
    if book.current_chapter:
        position += f"  [muted]|[/]  [chapter.name]{escape(book.current_chapter)}[/]"
    return position


def book_summary_panel(book: Book) -> Panel:
    """Return a Panel with the book's metadata and reading position."""
    summary = book.summary or ""
    if len(summary) > 200:
        summary = summary[:200] + "..."

    lines = [
        f"  [stat.label]Author:[/] [stat.value]{escape(book.author or 'Unknown Author')}[/]",
        f"  [stat.label]Position:[/] {_position_line(book)}",
    ]
    if book.isbn:
        lines.append(f"  [stat.label]ISBN:[/] {book.isbn}")
    if book.full_text:
        lines.append(f"  [stat.label]Text:[/] {len(book.full_text):,} chars attached")
    if summary:
        lines.append(f"  [stat.label]Summary:[/] {escape(summary)}")
    return Panel(
        "\n".join(lines),
        title=f"[bold]{escape(book.title)}[/] [muted](ID: {book.id[:8]})[/]",
        box=box.ROUNDED,
        border_style="dim",
        padding=(0, 2),
    )


def library_table(books: list[Book]) -> Table:
    """Build a Rich Table of the reader's library."""
    table = Table(box=box.ROUNDED, border_style="dim", show_header=True, padding=(0, 1))
    table.add_column("ID", style="muted")
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Progress", justify="right")

    for book in books:
        if book.total_pages:
            progress = f"{book.progress_percentage}%"
        else:
            progress = f"p. {book.current_page}"
        table.add_row(book.id[:8], escape(book.title), escape(book.author), progress)
    return table


def chapter_tree(book: Book) -> Tree:
    """Build a Rich Tree of the table of contents, marking the current chapter."""
    tree = Tree("[bold]Chapters[/]")
    for i, chapter in enumerate(book.chapters or []):
        marker = " [accent]<- reading[/]" if chapter == book.current_chapter else ""
        tree.add(f"[muted]{i + 1:>3}.[/] {escape(chapter)}{marker}")
    return tree


def render_message(console: Console, message: Message) -> None:
    """Print one stored message with a role prefix."""
    if message.role == MessageRole.USER:
        prefix = "[role.user]You>[/]"
    elif message.role == MessageRole.ASSISTANT:
        prefix = "[role.assistant]AI>[/]"
    else:
        prefix = "[muted]System>[/]"
    console.print(prefix, end=" ")
    console.print(message.content, markup=False, highlight=False)
