"""Rich rendering of provisioning progress events."""

from typing import Optional

from rich.console import Console
from rich.status import Status

from eks_bootstrap.provisioners.base import ResourceEvent


class RichProgressPrinter:
    """Progress callback that prints resource events with Rich.

    Waits are shown as a live spinner that is replaced by the next
    non-waiting event.
    """

    def __init__(self, console: Console):
        self.console = console
        self._status: Optional[Status] = None

    def __call__(self, name: str, event: ResourceEvent, detail: Optional[str] = None) -> None:
        if event == ResourceEvent.WAITING:
            text = f"[cyan]Waiting for {name}[/cyan] [dim]({detail})[/dim]"
            if self._status is None:
                self._status = self.console.status(text)
                self._status.start()
            else:
                self._status.update(text)
            return

        self.close()
        if event == ResourceEvent.CREATING:
            self.console.print(f"[cyan]→[/cyan] Creating {detail} [bold]{name}[/bold]...")
        elif event == ResourceEvent.CREATED:
            self.console.print(f"[green]✓[/green] Created {name} [dim]{detail}[/dim]")
        elif event == ResourceEvent.SKIPPED:
            self.console.print(f"[yellow]•[/yellow] {name} already exists, skipping [dim]{detail}[/dim]")
        elif event == ResourceEvent.READY:
            self.console.print(f"[green]✓[/green] {name} is {detail}")

    def close(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None
