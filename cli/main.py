"""CLI entry point for the bookchat reading companion.

Usage:
  bookchat list                      Show the library
  bookchat search "dune" --add 1     Find a book in the catalog and add it
  bookchat add -t "Title" -a Author  Add a book by hand
  bookchat progress BOOK -p 120      Record how far you've read
  bookchat chat BOOK                 Talk about the book, spoiler-free
  bookchat key set                   Store your OpenAI API key
  bookchat --help                    See all commands
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

# Ensure UTF-8 output on Windows so Rich can render book text
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")

import click
from rich.table import Table

from cli.theme import (
    get_console,
    app_header,
    command_panel,
    success_panel,
    book_summary_panel,
    library_table,
    chapter_tree,
    render_message,
)
from config.exceptions import BookChatError, CatalogError, StorageError, ValidationError
from config.logging_config import setup_logging
from config.settings import Settings, get_settings
from memory.conversation_store import ConversationStore
from models.book import Book
from models.database import Database
from tools.book_catalog import BookCatalogClient
from tools.chat_client import StreamingChatClient
from tools.context_builder import ContextBuilder
from tools.position import chapter_index
from tools.secret_store import FileSecretStore, GOOGLE_BOOKS_API_KEY, OPENAI_API_KEY
from workflow.callbacks import RichStreamCallback
from workflow.chat_session import ChatSession
from workflow.library import Library

console = get_console()
logger = logging.getLogger(__name__)

_QUIT_COMMANDS = {"/quit", "/exit", "/q"}


def _init_logging(verbose: bool):
    """Configure logging based on verbosity; only warnings reach the console."""
    level = logging.DEBUG if verbose else logging.INFO
    settings = get_settings()
    setup_logging(level=level, log_dir=settings.log_dir, console_enabled=verbose)


def _open_library(settings: Settings) -> Library:
    return Library(Database(settings.sqlite_db_path, retry_attempts=settings.db_retry_attempts))


def _resolve_book(library: Library, ref: str) -> Book:
    """Find a book by full id or unique id prefix, exiting with a message otherwise."""
    book = library.get_book(ref)
    if book:
        return book
    matches = [b for b in library.list_books() if b.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        console.print(f"[error]No book with ID {ref}[/]")
    else:
        console.print(f"[error]ID prefix {ref} matches {len(matches)} books; use more characters[/]")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """bookchat: discuss the book you're reading without spoilers.

    \b
    The assistant only ever sees the part of the book you have already
    read, based on the page you record with `bookchat progress`.
    """
    _init_logging(verbose)


# ---------------------------------------------------------------------------
# Library commands
# ---------------------------------------------------------------------------

@cli.command("list")
def list_books():
    """List the books in your library."""
    library = _open_library(get_settings())
    books = library.list_books()
    if not books:
        console.print("[muted]Your library is empty. Add a book with `bookchat add` or `bookchat search`.[/]")
        return
    console.print(library_table(books))


@cli.command()
@click.option("--title", "-t", required=True, help="Book title")
@click.option("--author", "-a", default="", help="Author name")
@click.option("--pages", "-p", type=int, default=None, help="Total number of pages")
@click.option("--summary", "-s", default=None, help="Short description of the book")
@click.option("--chapter", "-c", "chapters", multiple=True, help="Chapter title, in reading order (repeatable)")
@click.option("--text-file", type=click.Path(exists=True, dir_okay=False), default=None,
              help="Plain-text file with the book's full text")
def add(title, author, pages, summary, chapters, text_file):
    """Add a book to your library by hand.

    Example:
      bookchat add -t "The Great Gatsby" -a "F. Scott Fitzgerald" -p 180
    """
    library = _open_library(get_settings())
    try:
        book = library.add_book(
            title=title,
            author=author,
            total_pages=pages,
            summary=summary,
            chapters=list(chapters) or None,
        )
        if text_file:
            library.attach_text(book, text_file)
    except (ValueError, StorageError) as e:
        console.print(f"[error]Could not add book: {e}[/]")
        sys.exit(1)
    console.print(success_panel("Book added", f"  {book.title} [muted](ID: {book.id[:8]})[/]"))


@cli.command()
@click.argument("query")
@click.option("--add", "add_index", type=int, default=None, help="Add result number N to the library")
def search(query, add_index):
    """Search Google Books and optionally add a result."""
    settings = get_settings()
    secrets = FileSecretStore(settings.secrets_path)
    catalog = BookCatalogClient(settings, api_key=secrets.get(GOOGLE_BOOKS_API_KEY))

    try:
        results = asyncio.run(catalog.search(query))
    except CatalogError as e:
        console.print(f"[error]{e.message}[/]")
        sys.exit(1)

    if not results:
        console.print("[muted]No books found.[/]")
        return

    if add_index is None:
        table = Table(show_header=True, header_style="bold", border_style="dim")
        table.add_column("#", justify="right", style="muted")
        table.add_column("Title", style="bold")
        table.add_column("Author")
        table.add_column("ISBN", style="muted")
        for i, result in enumerate(results, 1):
            table.add_row(str(i), result.title, result.author, result.isbn or "")
        console.print(table)
        console.print("[muted]Add one with: bookchat search QUERY --add N[/]")
        return

    if not 1 <= add_index <= len(results):
        console.print(f"[error]Pick a result between 1 and {len(results)}[/]")
        sys.exit(1)

    library = _open_library(settings)
    try:
        book = asyncio.run(library.add_from_catalog(catalog, results[add_index - 1]))
    except (CatalogError, StorageError) as e:
        console.print(f"[error]Could not add book: {e}[/]")
        sys.exit(1)
    console.print(book_summary_panel(book))


@cli.command()
@click.argument("book_ref")
def show(book_ref):
    """Show a book's details, position and chapters."""
    library = _open_library(get_settings())
    book = _resolve_book(library, book_ref)
    console.print(book_summary_panel(book))
    if book.chapters:
        console.print(chapter_tree(book))


@cli.command()
@click.argument("book_ref")
@click.option("--page", "-p", type=int, default=None, help="Page you are on")
@click.option("--chapter", "-c", default=None,
              help="Chapter you are in; without --page, jumps to its estimated start page")
@click.option("--chapter-index", "-i", "chapter_number", type=int, default=None,
              help="Chapter number from the table of contents (1-based); estimates the page")
def progress(book_ref, page, chapter, chapter_number):
    """Record your reading position."""
    library = _open_library(get_settings())
    book = _resolve_book(library, book_ref)

    if page is None and chapter is None and chapter_number is None:
        console.print("[error]Give --page, --chapter or --chapter-index[/]")
        sys.exit(1)

    if chapter_number is None and chapter is not None and page is None:
        index = chapter_index(book.chapters, chapter.strip())
        if index is not None:
            chapter_number = index + 1

    try:
        if chapter_number is not None:
            book = library.select_chapter(book, chapter_number - 1)
            if page is not None:
                book = library.update_position(book, page, book.current_chapter)
        else:
            new_chapter = chapter if chapter is not None else book.current_chapter
            book = library.update_position(
                book, page if page is not None else book.current_page, new_chapter,
            )
    except ValidationError as e:
        console.print(f"[error]{e.message}[/]")
        if book.chapters:
            console.print(chapter_tree(book))
        sys.exit(1)
    except StorageError as e:
        console.print(f"[error]Could not save progress: {e}[/]")
        sys.exit(1)

    console.print(book_summary_panel(book))


@cli.command()
@click.argument("book_ref")
@click.argument("text_file", type=click.Path(exists=True, dir_okay=False))
def attach(book_ref, text_file):
    """Attach the book's full text, used for spoiler-safe context."""
    library = _open_library(get_settings())
    book = _resolve_book(library, book_ref)
    try:
        library.attach_text(book, text_file)
    except (OSError, UnicodeDecodeError, StorageError) as e:
        console.print(f"[error]Could not attach text: {e}[/]")
        sys.exit(1)
    console.print(success_panel("Text attached", f"  {len(book.full_text):,} characters"))


@cli.command()
@click.argument("book_ref")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def delete(book_ref, yes):
    """Delete a book and its conversation."""
    library = _open_library(get_settings())
    book = _resolve_book(library, book_ref)
    if not yes and not click.confirm(f"Delete '{book.title}' and its conversation?"):
        return
    library.delete_book(book.id)
    console.print(f"[success]Deleted {book.title}[/]")


# ---------------------------------------------------------------------------
# Chat commands
# ---------------------------------------------------------------------------

def _build_session(settings: Settings, book: Book, library: Library, callback=None) -> ChatSession:
    return ChatSession(
        book=book,
        store=ConversationStore(library.db),
        client=StreamingChatClient(settings),
        secrets=FileSecretStore(settings.secrets_path),
        context_builder=ContextBuilder.from_settings(settings),
        callback=callback,
    )


@cli.command()
@click.argument("book_ref")
def history(book_ref):
    """Print the conversation about a book."""
    settings = get_settings()
    library = _open_library(settings)
    book = _resolve_book(library, book_ref)
    session = _build_session(settings, book, library)
    session.open()
    if not session.messages:
        console.print("[muted]No conversation yet.[/]")
        return
    for message in session.messages:
        render_message(console, message)


async def _run_turn(session: ChatSession, text: str) -> None:
    """Run one turn; Ctrl-C cancels the reply instead of quitting."""
    task = session.start(text)
    if task is None:
        return
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        logger.debug("SIGINT handler unavailable; Ctrl-C will stop the program")
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Reply cancelled by user")
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


@cli.command()
@click.argument("book_ref")
def chat(book_ref):
    """Chat about a book up to your current page.

    Type /quit to leave. Ctrl-C while a reply is streaming cancels it.
    """
    settings = get_settings()
    library = _open_library(settings)
    book = _resolve_book(library, book_ref)

    secrets = FileSecretStore(settings.secrets_path)
    if not secrets.has(OPENAI_API_KEY):
        console.print("[warning]No OpenAI API key configured. Add one with `bookchat key set`.[/]")

    session = _build_session(settings, book, library, callback=RichStreamCallback(console))
    try:
        session.open()
    except StorageError as e:
        console.print(f"[error]Could not open conversation: {e}[/]")
        sys.exit(1)

    console.print(app_header(book.title))
    console.print(command_panel("Reading companion", {
        "Book": f"{book.title} by {book.author}" if book.author else book.title,
        "Position": f"page {book.current_page}" + (f" of {book.total_pages}" if book.total_pages else ""),
        "Messages": str(len(session.messages)),
    }))
    for message in session.messages[-6:]:
        render_message(console, message)

    while True:
        try:
            prompt = "[role.user]You>[/] "
            text = console.input(prompt)
        except (EOFError, KeyboardInterrupt):
            console.print()
            break
        if text.strip().lower() in _QUIT_COMMANDS:
            break
        if not text.strip() and session.draft:
            text = session.draft
        asyncio.run(_run_turn(session, text))


# ---------------------------------------------------------------------------
# API key commands
# ---------------------------------------------------------------------------

@cli.group()
def key():
    """Manage stored API keys."""


def _key_name(google_books: bool) -> str:
    return GOOGLE_BOOKS_API_KEY if google_books else OPENAI_API_KEY


@key.command("set")
@click.option("--google-books", is_flag=True, help="Store the Google Books key instead of OpenAI")
@click.option("--value", default=None, help="Key value (prompted for when omitted)")
def key_set(google_books, value: Optional[str]):
    """Store an API key."""
    settings = get_settings()
    secrets = FileSecretStore(settings.secrets_path)
    if value is None:
        value = click.prompt("API key", hide_input=True)
    value = value.strip()
    if not value:
        console.print("[error]API key cannot be empty[/]")
        sys.exit(1)
    try:
        secrets.save(_key_name(google_books), value)
    except BookChatError as e:
        console.print(f"[error]{e}[/]")
        sys.exit(1)
    console.print("[success]API key saved[/]")


@key.command("delete")
@click.option("--google-books", is_flag=True, help="Delete the Google Books key instead of OpenAI")
def key_delete(google_books):
    """Remove a stored API key."""
    settings = get_settings()
    FileSecretStore(settings.secrets_path).delete(_key_name(google_books))
    console.print("[success]API key deleted[/]")


@key.command("status")
def key_status():
    """Show which API keys are configured."""
    settings = get_settings()
    secrets = FileSecretStore(settings.secrets_path)
    for label, name in (("OpenAI", OPENAI_API_KEY), ("Google Books", GOOGLE_BOOKS_API_KEY)):
        state = "[success]configured[/]" if secrets.has(name) else "[muted]not set[/]"
        console.print(f"  [stat.label]{label}:[/] {state}")


if __name__ == "__main__":
    cli()
