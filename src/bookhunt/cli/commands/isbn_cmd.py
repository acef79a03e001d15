# ABOUTME: The `bookhunt isbn` command for checking and converting ISBNs and barcodes.
# ABOUTME: Prints the detected code type and its ISBN-10 / ISBN-13 forms.

import click
from rich.console import Console
from rich.table import Table

from bookhunt.search.isbn import Isbn, IsbnType

console = Console()


@click.command("isbn")
@click.argument("code")
@click.option(
    "--strict/--loose",
    default=True,
    help="Accept only ISBN-10/13 (--strict) or any EAN-13/UPC-A barcode (--loose).",
)
def isbn(code: str, strict: bool) -> None:
    """Validate an ISBN or barcode and show its other forms."""
    parsed = Isbn(code, strict=strict)
    if not parsed.is_valid(strict):
        console.print(f"[red]Not a valid {'ISBN' if strict else 'ISBN or barcode'}:[/red] {code}")
        raise SystemExit(1)

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold", width=8)
    table.add_column("Value")
    table.add_row("Type", parsed.type.name.replace("_", "-"))
    table.add_row("Code", parsed.as_text())
    if parsed.is_isbn10_compat():
        table.add_row("ISBN-10", parsed.as_text(IsbnType.ISBN10))
    if parsed.type in (IsbnType.ISBN10, IsbnType.ISBN13):
        table.add_row("ISBN-13", parsed.as_text(IsbnType.ISBN13))
    console.print(table)
