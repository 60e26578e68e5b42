from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

_CONSOLE: Optional[Console] = None


def _console() -> Console:
    global _CONSOLE
    if _CONSOLE is None:
        _CONSOLE = Console()
    return _CONSOLE


def panel(title: str, body: str) -> None:
    _console().print(Panel(body, title=title, border_style="cyan", expand=False))


def kv_table(title: str, data: Dict[str, Any]) -> None:
    t = Table(title=title, box=box.SIMPLE, expand=False)
    t.add_column("Key", style="bold cyan")
    t.add_column("Value")
    for k, v in data.items():
        t.add_row(str(k), "-" if v is None else str(v))
    _console().print(t)


def rows_table(title: str, columns: Iterable[str], rows: Iterable[Iterable[Any]]) -> None:
    t = Table(title=title, box=box.MINIMAL_DOUBLE_HEAD, expand=False)
    for col in columns:
        t.add_column(str(col))
    for r in rows:
        t.add_row(*[str(x) for x in r])
    _console().print(t)
