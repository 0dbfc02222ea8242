"""Command-line commands, registered on the group in promptsync.main."""
