"""User-facing messages printed during push, test and delete."""

SECTION_VALIDATION = "\n[bold]Validation[/bold]"
SPINNER_VALIDATING = "Validating the devfile"
SECTION_CREATING = "\n[bold]Creating Kubernetes resources for component {name}[/bold]"
SECTION_SYNCING = "\n[bold]Syncing to component {name}[/bold]"
SECTION_EXECUTING = "\n[bold]Executing devfile commands for component {name}[/bold]"
SECTION_TEST = "\n[bold]Executing devfile test command for component {name}[/bold]"
SECTION_GATHERING = "\n[bold]Gathering information for component {name}[/bold]"
SECTION_DELETING = "\n[bold]Deleting component {name}[/bold]"

SUCCESS = "[green] ✓ [/green] {message}"
WARNING = "[yellow] ⚠  {message}[/yellow]"

NO_CHANGES = "No file changes detected, skipping build. Use the '--force-build' flag to force the build."
PUSHED = "Changes successfully pushed to component"
DELETED = "Successfully deleted component"
