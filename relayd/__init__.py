"""relayd: HTTP and SSE transport for the relay library."""
