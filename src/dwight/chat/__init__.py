"""Chat session state machine, context assembly and reply streaming."""
