"""Chat transports: Telegram for production, a stdin REPL for development."""
