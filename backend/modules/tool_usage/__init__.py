"""modules/tool_usage — distance maths and external lookups."""
