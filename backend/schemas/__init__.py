"""schemas — frozen dataclasses describing a trip plan."""
