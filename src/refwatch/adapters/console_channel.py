"""Console channel used for dry runs.

Renders each notice to the terminal instead of sending it anywhere, so a
configuration can be tried against real pushes without mailing anyone.
"""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.rule import Rule
from rich.text import Text

from refwatch.adapters.notification_formatting import format_subject
from refwatch.core.models import Notice

_KIND_STYLES = {
    "ref": "bold yellow",
    "commit": "bold cyan",
    "tag": "bold magenta",
    "global": "bold green",
}


class ConsoleChannel:
    """Prints notices with a header rule per notice."""

    name = "console"

    def __init__(self, console: Optional[Console] = None, subject_prefix: Optional[str] = None) -> None:
        self._console = console or Console()
        self._subject_prefix = subject_prefix

    def send(self, notice: Notice) -> None:
        title = Text(format_subject(notice, self._subject_prefix), style=_KIND_STYLES[notice.kind.value])
        self._console.print(Rule(title))
        self._console.print(Text(notice.body), highlight=False)
