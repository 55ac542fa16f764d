"""modules — engine packages: planning, editing, sync, export, validation, tools."""
